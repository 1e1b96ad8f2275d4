import pytest
from fastapi.testclient import TestClient

from api.guardrail import get_guardrail_service
from api.main import create_app
from common.guardrail.repository import InMemoryRuleRepository
from common.guardrail.service import GuardrailService


@pytest.fixture
def repository(regression_rules) -> InMemoryRuleRepository:
    return InMemoryRuleRepository(regression_rules)


@pytest.fixture
def client(repository) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_guardrail_service] = lambda: GuardrailService(repository)
    return TestClient(app)


def test_evaluate_returns_envelope(client, regression_datasets):
    resp = client.post(
        "/guardrail/evaluate",
        json={"type": "ACTION", "area": "TEST", "datasets": regression_datasets},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["error"] == "Evaluation Complete!"
    assert body["data"]["conclusion_by"] == "RULE_SET"
    assert len(body["data"]["evaluations"]) == 16


def test_business_failure_is_still_200(client, regression_datasets):
    regression_datasets["test"].pop("field_A")
    resp = client.post(
        "/guardrail/evaluate",
        json={"type": "ACTION", "area": "TEST", "datasets": regression_datasets},
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert resp.json()["data"]["conclusion_notice"] == "Field A is missing!"


def test_unknown_rule_set_is_404(client):
    resp = client.post("/guardrail/evaluate", json={"type": "ACTION", "area": "NOPE", "datasets": {}})
    assert resp.status_code == 404
    assert "No RuleSet Found!" in resp.json()["detail"]


def test_invalid_ad_hoc_rule_is_422(client):
    resp = client.post(
        "/guardrail/evaluate",
        json={"datasets": {}, "rules": [{"type": "ACTION", "area": "TEST", "sequence": 0}]},
    )
    assert resp.status_code == 422
    assert "Invalid rule value" in resp.json()["detail"]


def test_broken_sub_rule_is_500(client):
    rule = {
        "type": "ACTION",
        "area": "TEST",
        "sequence": 1,
        "target": "test.date_A",
        "operator_name": "exists",
        "sub_rule": [{"operator_name": "date_tolerance", "depends": ["date_A"], "on_fail": "WARN", "fail": "x"}],
        "on_fail": "RESTRICT",
        "on_pass": "CONTINUE",
    }
    resp = client.post(
        "/guardrail/evaluate",
        json={"datasets": {"test": {"date_A": "2025-03-01"}}, "rules": [rule]},
    )
    assert resp.status_code == 500
    assert "depends INVALID" in resp.json()["detail"]


def test_empty_ad_hoc_rules_is_400(client):
    resp = client.post("/guardrail/evaluate", json={"datasets": {}, "rules": []})
    assert resp.status_code == 400


def test_get_rule_set_and_rule(client):
    resp = client.get("/guardrail/rules/status/funding")
    assert resp.status_code == 200
    assert [r["target"] for r in resp.json()["rules"]] == ["application.lender"]

    resp = client.get("/guardrail/rules/17")
    assert resp.status_code == 200
    assert resp.json()["operator_name"] == "exists"

    assert client.get("/guardrail/rules/999").status_code == 404


def test_add_rule(client, repository):
    record = {
        "type": "STATUS",
        "area": "FUNDING",
        "sequence": 2,
        "target": "application.amount",
        "operator_name": "num_>",
        "criteria": "0",
        "on_fail": "RESTRICT",
        "on_pass": "CONTINUE",
        "fail": "Amount required!",
    }
    resp = client.post("/guardrail/rules", json=record)
    assert resp.status_code == 201
    assert len(repository.get_rule_set("STATUS", "FUNDING")) == 2

    resp = client.post("/guardrail/rules", json={**record, "on_fail": "EXPLODE"})
    assert resp.status_code == 422


def test_operator_catalog(client):
    resp = client.get("/guardrail/operators")
    assert resp.status_code == 200
    names = [entry["operator"] for entry in resp.json()]
    assert "date_tolerance" in names and len(names) == 16
