import copy

import pytest

from common.guardrail.context import EvaluationContext
from common.guardrail.errors import InvalidRequestError
from common.guardrail.resolver import is_qualified_path, resolve_path, resolve_paths


DATASETS = {
    "application": {
        "lender": "Acme",
        "deal": {"contract_date": "2025-03-01", "amounts": [100, 200]},
        "empty": "",
        "zero": 0,
    },
}


def test_resolves_nested_paths():
    assert resolve_path(DATASETS, "application.lender") == "Acme"
    assert resolve_path(DATASETS, "application.deal.contract_date") == "2025-03-01"
    assert resolve_path(DATASETS, "application.deal.amounts.1") == 200


@pytest.mark.parametrize(
    "path",
    [
        "missing.lender",
        "application.missing",
        "application.lender.deeper",
        "application.deal.amounts.5",
        "application.deal.amounts.²",
        "application.deal.amounts.-1",
        "",
        "   ",
    ],
)
def test_missing_segments_resolve_to_none(path):
    assert resolve_path(DATASETS, path) is None


def test_present_falsy_values_are_returned():
    assert resolve_path(DATASETS, "application.empty") == ""
    assert resolve_path(DATASETS, "application.zero") == 0


def test_resolve_paths_keeps_input_order_and_keys():
    paths = ["application.zero", "application.lender", "nowhere.x"]
    resolved = resolve_paths(DATASETS, paths)
    assert list(resolved) == paths
    assert resolved["nowhere.x"] is None


def test_resolution_never_mutates_datasets():
    before = copy.deepcopy(DATASETS)
    resolve_paths(DATASETS, ["application.deal.amounts.0", "application.nope.deeper"])
    assert DATASETS == before


@pytest.mark.parametrize(
    "path,expected",
    [
        ("test.date_A", True),
        ("a.b.c", True),
        ("date_A", False),
        ("test.", False),
        (".date_A", False),
        (None, False),
    ],
)
def test_qualified_paths(path, expected):
    assert is_qualified_path(path) is expected


def test_context_is_read_only_view():
    source = {"test": {"number_A": 1}}
    ctx = EvaluationContext(source)
    assert ctx.dataset_names == ("test",)
    assert ctx.resolve("test.number_A") == 1
    with pytest.raises(TypeError):
        ctx.datasets["other"] = {}  # type: ignore[index]
    assert "other" not in source


def test_context_rejects_non_mapping_dataset():
    with pytest.raises(InvalidRequestError, match="test"):
        EvaluationContext({"test": [1, 2, 3]})
