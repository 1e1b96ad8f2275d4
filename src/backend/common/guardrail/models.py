from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .criteria import CRITERIA_KIND_BY_OPERATOR, Criteria, NoCriteria, decode_json_text, parse_criteria
from .errors import RuleValidationError


RULE_SET_CONCLUSION = "RULE_SET"
ALL_RULES_PASSED_NOTICE = "No Restriction Imposed All Rules Passed"
RECORD_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RuleType(str, Enum):
    ACTION = "ACTION"
    ASSIGNMENT = "ASSIGNMENT"
    STATUS = "STATUS"
    TEST = "TEST"


class OnFail(str, Enum):
    RESTRICT = "RESTRICT"
    WARN = "WARN"
    LOG = "LOG"


class OnPass(str, Enum):
    CONTINUE = "CONTINUE"
    WARN = "WARN"
    LOG = "LOG"


class OperatorName(str, Enum):
    EXISTS = "exists"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"
    REGEX = "regex"
    NUM_GT = "num_>"
    NUM_GTE = "num_>="
    NUM_LT = "num_<"
    NUM_LTE = "num_<="
    NUM_EQ = "num_="
    NUM_NEQ = "num_!="
    STR_EQ = "str_="
    STR_NEQ = "str_!="
    IN_SET = "in_set"
    NOT_IN_SET = "not_in_set"
    BETWEEN = "between"
    DATE_TOLERANCE = "date_tolerance"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _criteria_for(operator: Any, raw: Any) -> Any:
    # Unknown operators are reported by the operator field itself.
    name = operator.value if isinstance(operator, Enum) else operator
    if not isinstance(name, str) or name not in CRITERIA_KIND_BY_OPERATOR:
        return None
    return parse_criteria(name, _blank_to_none(raw))


class SubRule(BaseModel):
    """Nested condition evaluated only when its parent rule passes.

    Structural gaps (missing operator, depends, on_fail or fail text) are
    tolerated here and rejected by the evaluator, since they only matter
    once the parent rule has passed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    operator_name: Optional[str] = None
    criteria: Optional[Criteria] = None
    depends: Tuple[str, ...] = ()
    on_fail: Optional[OnFail] = None
    fail_message: Optional[str] = Field(default=None, alias="fail")

    @model_validator(mode="before")
    @classmethod
    def _decode(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        depends = data.get("depends")
        if isinstance(depends, str):
            stripped = depends.strip()
            data["depends"] = decode_json_text(stripped) if stripped.startswith("[") else [stripped]
        data["criteria"] = _criteria_for(data.get("operator_name"), data.get("criteria"))
        data["on_fail"] = _blank_to_none(data.get("on_fail"))
        return data

    def to_record(self) -> Dict[str, Any]:
        return {
            "operator_name": self.operator_name,
            "criteria": self.criteria.raw if self.criteria is not None else None,
            "depends": list(self.depends),
            "on_fail": self.on_fail.value if self.on_fail else None,
            "fail": self.fail_message,
        }


class Rule(BaseModel):
    """One governing condition of a rule set.

    Accepts both the python field names and the stored record keys
    (``operator_name``, ``sub_rule``, ``pass``, ``fail``, ``warn``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int = 0
    type: RuleType
    area: str = Field(min_length=1)
    sequence: int = Field(ge=1)
    target: str = Field(min_length=1)
    operator: OperatorName = Field(alias="operator_name")
    criteria: Criteria = Field(default_factory=NoCriteria)
    sub_rules: Tuple[SubRule, ...] = Field(default=(), alias="sub_rule")
    on_fail: OnFail
    on_pass: OnPass
    pass_message: str = Field(default="", alias="pass")
    fail_message: str = Field(default="", alias="fail")
    warn_message: str = Field(default="", alias="warn")
    updated_by: str = "System User"
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _decode(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        operator = _pick(data, "operator_name", "operator")
        for key in ("operator", "operator_name"):
            data.pop(key, None)
        data["operator_name"] = operator

        target = data.get("target")
        if isinstance(target, str) and target.strip().startswith("["):
            paths = decode_json_text(target.strip())
            if not isinstance(paths, list) or len(paths) != 1:
                raise ValueError("target must name exactly one dataset path")
            data["target"] = paths[0]

        parsed = _criteria_for(operator, data.get("criteria"))
        data["criteria"] = parsed if parsed is not None else NoCriteria(raw=data.get("criteria"))

        sub_rules = _blank_to_none(_pick(data, "sub_rule", "sub_rules"))
        data.pop("sub_rules", None)
        if isinstance(sub_rules, str):
            sub_rules = decode_json_text(sub_rules.strip())
        if isinstance(sub_rules, Mapping):
            sub_rules = [sub_rules]
        data["sub_rule"] = sub_rules or ()

        for key in ("updated_at", "created_at"):
            data[key] = _blank_to_none(data.get(key))
        if data.get("updated_by") is None:
            data.pop("updated_by", None)
        else:
            data["updated_by"] = str(data["updated_by"])
        if data.get("id") is None:
            data["id"] = 0
        return data

    @field_validator("area", "target")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    def to_record(self) -> Dict[str, Any]:
        def _ts(value: Optional[datetime]) -> Optional[str]:
            return value.strftime(RECORD_TIMESTAMP_FORMAT) if value else None

        return {
            "id": self.id,
            "type": self.type.value,
            "area": self.area,
            "sequence": self.sequence,
            "target": self.target,
            "operator_name": self.operator.value,
            "criteria": self.criteria.raw,
            "sub_rule": [sub.to_record() for sub in self.sub_rules] or None,
            "on_fail": self.on_fail.value,
            "on_pass": self.on_pass.value,
            "pass": self.pass_message,
            "fail": self.fail_message,
            "warn": self.warn_message,
            "updated_by": self.updated_by,
            "updated_at": _ts(self.updated_at),
            "created_at": _ts(self.created_at),
        }


def load_rule(record: Union[Rule, Mapping[str, Any]], *, index: Optional[int] = None) -> Rule:
    """Build a Rule, converting pydantic errors into RuleValidationError."""
    if isinstance(record, Rule):
        return record
    try:
        return Rule.model_validate(record)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'rule'}: {err['msg']}" for err in errors
        )
        where = f" (rule #{index})" if index is not None else ""
        raise RuleValidationError(
            f"Invalid rule value{where}: {problems}",
            index=index,
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in errors],
        ) from exc


class RuleSet(BaseModel):
    """Rules ordered by sequence; ties keep their input order."""

    model_config = ConfigDict(frozen=True)

    type: Optional[RuleType] = None
    area: Optional[str] = None
    rules: Tuple[Rule, ...] = ()

    @field_validator("rules")
    @classmethod
    def _order(cls, rules: Tuple[Rule, ...]) -> Tuple[Rule, ...]:
        return tuple(sorted(rules, key=lambda r: r.sequence))

    @classmethod
    def from_records(
        cls,
        records: Iterable[Union[Rule, Mapping[str, Any]]],
        *,
        type: Optional[RuleType] = None,
        area: Optional[str] = None,
    ) -> "RuleSet":
        rules = [load_rule(record, index=i) for i, record in enumerate(records)]
        return cls(type=type, area=area, rules=tuple(rules))

    def duplicate_sequences(self) -> List[int]:
        seen: set[int] = set()
        dupes: List[int] = []
        for rule in self.rules:
            if rule.sequence in seen and rule.sequence not in dupes:
                dupes.append(rule.sequence)
            seen.add(rule.sequence)
        return dupes

    def __len__(self) -> int:
        return len(self.rules)


class SubRuleResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    passed: bool
    criteria: Any = None
    operator_name: str
    depends: Dict[str, Any] = Field(default_factory=dict)
    on_fail: Optional[OnFail] = None
    fail_message: str = Field(default="", alias="fail")


class EvaluationRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sequence: int
    target: str
    value: Any = None
    operator: str
    criteria: Any = None
    passed: bool
    sub_rule_results: Tuple[SubRuleResult, ...] = Field(default=(), alias="sub_rule")
    on_fail: OnFail
    on_pass: OnPass
    pass_message: str = Field(default="", alias="pass")
    fail_message: str = Field(default="", alias="fail")
    warn_message: str = Field(default="", alias="warn")


class EvaluationReport(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    evaluations: Tuple[EvaluationRecord, ...] = ()
    conclusion_by: Union[int, Literal["RULE_SET"]]
    conclusion_notice: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
