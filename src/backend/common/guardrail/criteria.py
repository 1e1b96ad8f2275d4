"""Criteria variants, one per operator family.

Stored rules carry criteria as loosely-typed text (a number, a JSON list, a
``{"from", "to"}`` object, a regex, a dataset path ...). The shape is decided
once, from the operator name, when a rule is built; evaluation code only ever
sees one of the variants below.
"""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Callable, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class _CriteriaBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Criteria exactly as supplied, echoed back in evaluation records.
    raw: Any = None

    def bind(self, resolve: Callable[[str], Any]) -> "_CriteriaBase":
        """Return criteria with any dataset references resolved."""
        return self


class NoCriteria(_CriteriaBase):
    kind: Literal["none"] = "none"


class NumericCriteria(_CriteriaBase):
    kind: Literal["numeric"] = "numeric"
    value: Decimal


class TextCriteria(_CriteriaBase):
    kind: Literal["text"] = "text"
    value: str


class PatternCriteria(_CriteriaBase):
    kind: Literal["pattern"] = "pattern"
    pattern: str
    flags: int = 0

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern, self.flags)


class SetCriteria(_CriteriaBase):
    kind: Literal["set"] = "set"
    members: Tuple[Any, ...]


class RangeCriteria(_CriteriaBase):
    kind: Literal["range"] = "range"
    lower: Decimal
    upper: Decimal


class ToleranceCriteria(_CriteriaBase):
    """Day-count tolerance: ``(minimum,)`` or ``(minimum, maximum)``.

    A bound may be a dotted dataset path until :meth:`bind` resolves it; a
    bound that cannot be resolved to a number becomes ``None``.
    """

    kind: Literal["tolerance"] = "tolerance"
    bounds: Tuple[Union[Decimal, str, None], ...]

    @property
    def has_references(self) -> bool:
        return any(isinstance(b, str) for b in self.bounds)

    def bind(self, resolve: Callable[[str], Any]) -> "ToleranceCriteria":
        if not self.has_references:
            return self
        resolved: list[Optional[Decimal]] = []
        for bound in self.bounds:
            if not isinstance(bound, str):
                resolved.append(bound)
                continue
            value = resolve(bound)
            # A single reference may hold the whole [min, max] pair.
            if isinstance(value, (list, tuple)) and len(self.bounds) == 1:
                resolved.extend(to_decimal(v) for v in value[:2])
            else:
                resolved.append(to_decimal(value))
        return self.model_copy(update={"bounds": tuple(resolved)})

    def limits(self) -> Optional[Tuple[Decimal, Optional[Decimal]]]:
        if not self.bounds or any(not isinstance(b, Decimal) for b in self.bounds):
            return None
        minimum = self.bounds[0]
        maximum = self.bounds[1] if len(self.bounds) > 1 else None
        return minimum, maximum


Criteria = Annotated[
    Union[
        NoCriteria,
        NumericCriteria,
        TextCriteria,
        PatternCriteria,
        SetCriteria,
        RangeCriteria,
        ToleranceCriteria,
    ],
    Field(discriminator="kind"),
]


# Operator name -> criteria kind. Keys mirror models.OperatorName values.
CRITERIA_KIND_BY_OPERATOR: Dict[str, str] = {
    "exists": "none",
    "is_true": "none",
    "is_false": "none",
    "regex": "pattern",
    "num_>": "numeric",
    "num_>=": "numeric",
    "num_<": "numeric",
    "num_<=": "numeric",
    "num_=": "numeric",
    "num_!=": "numeric",
    "str_=": "text",
    "str_!=": "text",
    "in_set": "set",
    "not_in_set": "set",
    "between": "range",
    "date_tolerance": "tolerance",
}

_DELIMITED_PATTERN = re.compile(r"^/(?P<body>.*)/(?P<flags>[imsx]*)$", re.DOTALL)
_PATTERN_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a scalar to a finite Decimal; ``None`` when impossible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, (float, str)):
        try:
            out = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        return out if out.is_finite() else None
    return None


def decode_json_text(text: str) -> Any:
    """Decode JSON stored as text, tolerating backslash-escaped quoting.

    Values stored upstream were escaped before being written, and nested
    structures were sometimes encoded twice; both are unwrapped here.
    """
    candidates = [text, text.replace('\\"', '"').replace("\\'", "'").replace("\\\\", "\\")]
    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc
            continue
        if isinstance(decoded, str) and decoded.strip()[:1] in ("[", "{"):
            return decode_json_text(decoded)
        return decoded
    raise ValueError(f"criteria is not valid JSON: {text!r}") from last_error


def _is_path(value: Any) -> bool:
    return isinstance(value, str) and "." in value and to_decimal(value) is None


def _require_decimal(value: Any, label: str) -> Decimal:
    out = to_decimal(value)
    if out is None:
        raise ValueError(f"{label} must be numeric, got {value!r}")
    return out


def _structured(raw: Any) -> Any:
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped[:1] in ("[", "{", '"'):
            return decode_json_text(stripped)
        return stripped
    return raw


def _parse_numeric(raw: Any) -> NumericCriteria:
    if raw is None:
        raise ValueError("numeric operators require criteria")
    value = _structured(raw) if isinstance(raw, str) else raw
    return NumericCriteria(raw=raw, value=_require_decimal(value, "criteria"))


def _parse_text(raw: Any) -> TextCriteria:
    if raw is None or isinstance(raw, (bool, list, dict)):
        raise ValueError(f"string operators require scalar criteria, got {raw!r}")
    return TextCriteria(raw=raw, value=str(raw))


def _parse_pattern(raw: Any) -> PatternCriteria:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError("regex requires a pattern")
    text = raw.strip().strip("\"'")
    flags = 0
    match = _DELIMITED_PATTERN.match(text)
    if match:
        text = match.group("body")
        for flag in match.group("flags"):
            flags |= _PATTERN_FLAGS[flag]
    try:
        re.compile(text, flags)
    except re.error as exc:
        raise ValueError(f"Invalid regular expression pattern: {raw!r}") from exc
    return PatternCriteria(raw=raw, pattern=text, flags=flags)


def _parse_set(raw: Any) -> SetCriteria:
    members = _structured(raw)
    if not isinstance(members, (list, tuple)) or len(members) < 1:
        raise ValueError("in_set/not_in_set require a non-empty list")
    return SetCriteria(raw=raw, members=tuple(members))


def _parse_range(raw: Any) -> RangeCriteria:
    shape = _structured(raw)
    if isinstance(shape, dict) and "from" in shape and "to" in shape:
        lower, upper = shape["from"], shape["to"]
    elif isinstance(shape, (list, tuple)) and len(shape) == 2:
        lower, upper = shape
    else:
        raise ValueError("between requires criteria {from, to}")
    lower_d = _require_decimal(lower, "between.from")
    upper_d = _require_decimal(upper, "between.to")
    if lower_d > upper_d:
        raise ValueError(f"between.from ({lower_d}) is greater than between.to ({upper_d})")
    return RangeCriteria(raw=raw, lower=lower_d, upper=upper_d)


def _tolerance_bound(value: Any) -> Union[Decimal, str]:
    if _is_path(value):
        return value
    return _require_decimal(value, "date_tolerance bound")


def _parse_tolerance(raw: Any) -> ToleranceCriteria:
    shape = _structured(raw)
    if isinstance(shape, dict):
        if "min" not in shape:
            raise ValueError("date_tolerance criteria object requires 'min'")
        items = [shape["min"]] + ([shape["max"]] if shape.get("max") is not None else [])
    elif isinstance(shape, (list, tuple)):
        items = list(shape)
    elif shape is not None and not isinstance(shape, bool):
        items = [shape]
    else:
        raise ValueError("date_tolerance requires criteria [min, max]")

    if len(items) not in (1, 2):
        raise ValueError("date_tolerance criteria must contain 1 or 2 elements")
    bounds = tuple(_tolerance_bound(item) for item in items)
    if len(bounds) == 2 and all(isinstance(b, Decimal) for b in bounds) and bounds[0] > bounds[1]:
        raise ValueError("date_tolerance minimum is greater than maximum")
    return ToleranceCriteria(raw=raw, bounds=bounds)


_PARSERS: Dict[str, Callable[[Any], _CriteriaBase]] = {
    "none": lambda raw: NoCriteria(raw=raw),
    "numeric": _parse_numeric,
    "text": _parse_text,
    "pattern": _parse_pattern,
    "set": _parse_set,
    "range": _parse_range,
    "tolerance": _parse_tolerance,
}


def parse_criteria(operator: str, raw: Any) -> _CriteriaBase:
    """Build the criteria variant the named operator expects.

    Raises ValueError when the operator is unknown or the criteria do not
    fit its shape.
    """
    if isinstance(raw, _CriteriaBase):
        return raw
    kind = CRITERIA_KIND_BY_OPERATOR.get(operator)
    if kind is None:
        raise ValueError(f"Unknown operator '{operator}'")
    return _PARSERS[kind](raw)
