import json
from pathlib import Path

from scripts.run_guardrail import EXIT_BUSINESS_FAILURE, EXIT_CONFIG_ERROR, EXIT_SUCCESS, main


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
RULES = str(FIXTURES_DIR / "regression_rules.json")
DATASETS = str(FIXTURES_DIR / "regression_datasets.json")


def test_cli_writes_reports_for_passing_rule_set(tmp_path, monkeypatch):
    monkeypatch.setenv("GUARDRAIL_LOG_LEVEL", "WARNING")
    code = main(
        ["--rules", RULES, "--datasets", DATASETS, "--type", "action", "--area", "test", "--output-dir", str(tmp_path)]
    )
    assert code == EXIT_SUCCESS

    report = json.loads((tmp_path / "guardrail_ACTION_TEST.json").read_text())
    assert report["success"] is True
    assert report["conclusion_by"] == "RULE_SET"
    md = (tmp_path / "guardrail_ACTION_TEST.md").read_text()
    assert md.startswith("# Guardrail Evaluation ACTION_TEST")
    assert "date_tolerance" in md


def test_cli_business_failure_exit_code(tmp_path, monkeypatch, regression_datasets):
    monkeypatch.setenv("GUARDRAIL_LOG_LEVEL", "WARNING")
    regression_datasets["application"] = {}
    datasets = tmp_path / "datasets.json"
    datasets.write_text(json.dumps(regression_datasets))

    code = main(
        [
            "--rules", RULES,
            "--datasets", str(datasets),
            "--type", "STATUS",
            "--area", "FUNDING",
            "--output-dir", str(tmp_path),
        ]
    )
    assert code == EXIT_BUSINESS_FAILURE
    report = json.loads((tmp_path / "guardrail_STATUS_FUNDING.json").read_text())
    assert report["conclusion_notice"] == "No lender assigned!"


def test_cli_ad_hoc_mode_evaluates_whole_file(tmp_path, monkeypatch, regression_rules):
    monkeypatch.setenv("GUARDRAIL_LOG_LEVEL", "WARNING")
    rules = tmp_path / "rules.json"
    rules.write_text(json.dumps(regression_rules[:14]))

    code = main(["--rules", str(rules), "--datasets", DATASETS, "--output-dir", str(tmp_path)])
    assert code == EXIT_SUCCESS
    assert (tmp_path / "guardrail_ADHOC_ALL.json").exists()


def test_cli_configuration_errors(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("GUARDRAIL_LOG_LEVEL", "WARNING")
    assert main(["--rules", RULES, "--datasets", DATASETS, "--type", "ACTION"]) == EXIT_CONFIG_ERROR

    missing = str(tmp_path / "nope.json")
    assert main(["--rules", missing, "--datasets", DATASETS, "--output-dir", str(tmp_path)]) == EXIT_CONFIG_ERROR

    code = main(
        ["--rules", RULES, "--datasets", DATASETS, "--type", "ACTION", "--area", "NOPE", "--output-dir", str(tmp_path)]
    )
    assert code == EXIT_CONFIG_ERROR
    assert "No RuleSet Found!" in capsys.readouterr().err
