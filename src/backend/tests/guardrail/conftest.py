import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import json
from pathlib import Path

import pytest

from common.guardrail.models import Rule, SubRule


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def regression_rules() -> list[dict]:
    return json.loads((FIXTURES_DIR / "regression_rules.json").read_text())


@pytest.fixture
def regression_datasets() -> dict:
    return json.loads((FIXTURES_DIR / "regression_datasets.json").read_text())


@pytest.fixture
def make_rule():
    def _make(
        *,
        target: str = "test.field_A",
        operator: str = "exists",
        criteria=None,
        sequence: int = 1,
        sub_rules=None,
        on_fail: str = "RESTRICT",
        on_pass: str = "CONTINUE",
        fail: str | None = None,
        rule_id: int = 0,
        rule_type: str = "ACTION",
        area: str = "TEST",
    ) -> Rule:
        return Rule.model_validate(
            {
                "id": rule_id,
                "type": rule_type,
                "area": area,
                "sequence": sequence,
                "target": target,
                "operator_name": operator,
                "criteria": criteria,
                "sub_rule": sub_rules,
                "on_fail": on_fail,
                "on_pass": on_pass,
                "pass": f"{target} passed.",
                "fail": fail if fail is not None else f"{target} failed!",
                "warn": "",
            }
        )

    return _make


@pytest.fixture
def make_sub_rule():
    def _make(
        *,
        operator: str | None = "date_tolerance",
        depends=("test.date_A", "test.date_B"),
        criteria=(10, 30),
        on_fail: str | None = "WARN",
        fail: str | None = "Dates are outside tolerance!",
    ) -> dict:
        record = {
            "operator_name": operator,
            "depends": list(depends) if depends is not None else None,
            "criteria": list(criteria) if isinstance(criteria, tuple) else criteria,
            "on_fail": on_fail,
            "fail": fail,
        }
        return {k: v for k, v in record.items() if v is not None}

    return _make


@pytest.fixture
def sub_rule_model(make_sub_rule):
    def _make(**kwargs) -> SubRule:
        return SubRule.model_validate(make_sub_rule(**kwargs))

    return _make
