from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from .criteria import (
    CRITERIA_KIND_BY_OPERATOR,
    NoCriteria,
    NumericCriteria,
    PatternCriteria,
    RangeCriteria,
    SetCriteria,
    TextCriteria,
    ToleranceCriteria,
)
from .models import OperatorName
from .operators import registry


_CRITERIA_MODELS = {
    "none": NoCriteria,
    "numeric": NumericCriteria,
    "text": TextCriteria,
    "pattern": PatternCriteria,
    "set": SetCriteria,
    "range": RangeCriteria,
    "tolerance": ToleranceCriteria,
}

_CRITERIA_FORMS = {
    "none": "ignored",
    "numeric": "number, or numeric text",
    "text": "scalar text",
    "pattern": "regular expression, optionally delimited as /body/flags",
    "set": "non-empty JSON list",
    "range": '{"from": n, "to": n} (inclusive)',
    "tolerance": '{"min": n, "max": n}, [min, max], [min], or a dataset path holding them',
}

_SUMMARIES = {
    OperatorName.EXISTS: "Value is present (not null).",
    OperatorName.IS_TRUE: "Value is boolean true.",
    OperatorName.IS_FALSE: "Value is boolean false.",
    OperatorName.REGEX: "Textual value matches the pattern.",
    OperatorName.NUM_GT: "Numeric value is greater than criteria.",
    OperatorName.NUM_GTE: "Numeric value is greater than or equal to criteria.",
    OperatorName.NUM_LT: "Numeric value is less than criteria.",
    OperatorName.NUM_LTE: "Numeric value is less than or equal to criteria.",
    OperatorName.NUM_EQ: "Numeric value equals criteria.",
    OperatorName.NUM_NEQ: "Numeric value differs from criteria.",
    OperatorName.STR_EQ: "Textual value equals criteria.",
    OperatorName.STR_NEQ: "Textual value differs from criteria.",
    OperatorName.IN_SET: "Value is a member of the criteria list.",
    OperatorName.NOT_IN_SET: "Value is not a member of the criteria list.",
    OperatorName.BETWEEN: "Numeric value lies within [from, to].",
    OperatorName.DATE_TOLERANCE: "Absolute day difference between two dates lies within [min, max].",
}


class OperatorCatalogEntry(BaseModel):
    operator: str
    summary: str = ""
    criteria_kind: str
    criteria_form: str = ""
    null_value_passes: bool = False

    module: str
    function_name: str

    criteria_schema: Dict[str, Any] = Field(default_factory=dict)


def build_catalog() -> List[OperatorCatalogEntry]:
    entries: List[OperatorCatalogEntry] = []
    for name in OperatorName:
        fn = registry.get(name.value)
        kind = CRITERIA_KIND_BY_OPERATOR[name.value]
        entries.append(
            OperatorCatalogEntry(
                operator=name.value,
                summary=_SUMMARIES.get(name, ""),
                criteria_kind=kind,
                criteria_form=_CRITERIA_FORMS[kind],
                null_value_passes=bool(fn is not None and fn(None, _sample_criteria(kind))),
                module=getattr(fn, "__module__", ""),
                function_name=getattr(fn, "__name__", ""),
                criteria_schema=_CRITERIA_MODELS[kind].model_json_schema(),
            )
        )

    entries.sort(key=lambda e: e.operator)
    return entries


def _sample_criteria(kind: str) -> Any:
    samples = {
        "none": NoCriteria(),
        "numeric": NumericCriteria(value=0),
        "text": TextCriteria(value=""),
        "pattern": PatternCriteria(pattern=".*"),
        "set": SetCriteria(members=("",)),
        "range": RangeCriteria(lower=0, upper=0),
        "tolerance": ToleranceCriteria(bounds=(0,)),
    }
    return samples[kind]


def _dump_json(catalog: list[dict[str, Any]]) -> str:
    return json.dumps(catalog, indent=2, sort_keys=True)


def _dump_yaml(catalog: list[dict[str, Any]]) -> str:
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as exc:
        raise SystemExit("PyYAML is required for YAML output. Install it with `pip install pyyaml`.") from exc

    return yaml.safe_dump(catalog, sort_keys=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate the guardrail operator catalog.")
    parser.add_argument(
        "--format",
        choices=("yaml", "json"),
        default="yaml",
        help="Output format (default: yaml).",
    )
    args = parser.parse_args(argv)

    catalog = [e.model_dump() for e in build_catalog()]
    if args.format == "json":
        print(_dump_json(catalog))
    else:
        print(_dump_yaml(catalog))


if __name__ == "__main__":
    main()
