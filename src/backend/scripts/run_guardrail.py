from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


_ensure_backend_on_path()

from common.guardrail.config import configure_logging, get_guardrail_settings  # noqa: E402
from common.guardrail.errors import GuardrailError  # noqa: E402
from common.guardrail.models import EvaluationReport  # noqa: E402
from common.guardrail.repository import InMemoryRuleRepository  # noqa: E402
from common.guardrail.service import EvaluationRequest, GuardrailService  # noqa: E402


EXIT_SUCCESS = 0
EXIT_BUSINESS_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _load_json(path: Path):
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def _write_markdown(report: EvaluationReport, title: str, out_path: Path) -> None:
    lines = [
        f"# Guardrail Evaluation {title}",
        "",
        f"- Success: {report.success}",
        f"- Concluded by: {report.conclusion_by}",
        f"- Notice: {report.conclusion_notice}",
        "",
        "## Evaluations",
    ]
    for record in report.evaluations:
        status = "PASS" if record.passed else "FAIL"
        lines.append("")
        lines.append(f"### {record.sequence}. {record.target} `{record.operator}` - {status}")
        lines.append(f"- Value: {record.value!r}")
        lines.append(f"- Criteria: {record.criteria!r}")
        if not record.passed and record.fail_message:
            lines.append(f"- {record.on_fail.value}: {record.fail_message}")
        for sub in record.sub_rule_results:
            sub_status = "PASS" if sub.passed else "FAIL"
            lines.append(f"  - sub-rule `{sub.operator_name}` on {', '.join(sub.depends)}: {sub_status}")
            if not sub.passed and sub.fail_message:
                lines.append(f"    - {sub.on_fail.value if sub.on_fail else ''}: {sub.fail_message}")
    out_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Evaluate a guardrail rule set against dataset files and write JSON/MD outputs."
    )
    parser.add_argument("--rules", required=True, help="JSON file holding a list of rule records.")
    parser.add_argument(
        "--datasets",
        required=True,
        help="JSON file holding an object of named datasets (e.g. {\"test\": {...}}).",
    )
    parser.add_argument("--type", default=None, help="Rule set type; with --area, selects rules from the file.")
    parser.add_argument("--area", default=None, help="Rule set area; with --type, selects rules from the file.")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Output directory for report files (defaults to the current directory).",
    )
    args = parser.parse_args(argv)

    if bool(args.type) != bool(args.area):
        print("--type and --area must be given together.", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    settings = get_guardrail_settings()
    configure_logging(settings)

    output_dir = Path(args.output_dir).resolve() if args.output_dir else Path(".").resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        records = _load_json(Path(args.rules))
        datasets = _load_json(Path(args.datasets))
    except (OSError, ValueError) as exc:
        print(f"Could not read input: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    if not isinstance(records, list):
        print(f"{args.rules} must hold a JSON list of rule records.", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.type:
        service = GuardrailService(InMemoryRuleRepository(records, cache_ttl_seconds=0))
        payload = {"type": args.type.upper(), "area": args.area, "datasets": datasets}
        base_name = f"guardrail_{args.type.upper()}_{args.area.upper()}"
    else:
        service = GuardrailService()
        payload = {"rules": records, "datasets": datasets}
        base_name = "guardrail_ADHOC_ALL"

    try:
        report = service.evaluate(EvaluationRequest.parse(payload))
    except GuardrailError as exc:
        print(f"Evaluation aborted: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    out_json = output_dir / f"{base_name}.json"
    out_md = output_dir / f"{base_name}.md"
    out_json.write_text(json.dumps(report.to_wire(), indent=2), encoding="utf-8")
    _write_markdown(report, base_name.removeprefix("guardrail_"), out_md)

    print(f"Wrote {out_json}")
    print(f"Wrote {out_md}")
    print(f"{'PASSED' if report.success else 'FAILED'}: {report.conclusion_notice}")

    return EXIT_SUCCESS if report.success else EXIT_BUSINESS_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
