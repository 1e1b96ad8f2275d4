"""Operator library: one pure predicate per operator name.

Every operator takes the resolved value and its criteria variant and
returns a bool. A missing (``None``) value never raises; it simply fails
the predicate.
"""

from __future__ import annotations

import logging
import operator as _op
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from .criteria import (
    NoCriteria,
    NumericCriteria,
    PatternCriteria,
    RangeCriteria,
    SetCriteria,
    TextCriteria,
    ToleranceCriteria,
    to_decimal,
)
from .models import OperatorName


logger = logging.getLogger(__name__)

OperatorFn = Callable[[Any, Any], bool]

SECONDS_PER_DAY = Decimal(86400)


class OperatorRegistry:
    def __init__(self):
        self._operators: Dict[str, OperatorFn] = {}

    def register(self, name: str, fn: OperatorFn) -> None:
        if name in self._operators:
            raise ValueError(f"Duplicate operator registered: {name}")
        self._operators[name] = fn

    def get(self, name: str) -> Optional[OperatorFn]:
        return self._operators.get(name)

    def missing(self, required: Iterable[str]) -> List[str]:
        return [name for name in required if name not in self._operators]

    def copy(self, *, exclude: Iterable[str] = ()) -> "OperatorRegistry":
        clone = OperatorRegistry()
        skip = set(exclude)
        for name, fn in self._operators.items():
            if name not in skip:
                clone.register(name, fn)
        return clone

    def __contains__(self, name: object) -> bool:
        return name in self._operators


registry = OperatorRegistry()


def register_operator(name: OperatorName) -> Callable[[OperatorFn], OperatorFn]:
    def _decorator(fn: OperatorFn) -> OperatorFn:
        registry.register(name.value, fn)
        return fn

    return _decorator


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (bool, Mapping, list, tuple, set)):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return None


def _same(left: Any, right: Any) -> bool:
    # bools never match numbers (True == 1 in python).
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if left == right:
        return True
    left_text, right_text = _as_text(left), _as_text(right)
    return left_text is not None and left_text == right_text


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@register_operator(OperatorName.EXISTS)
def exists(value: Any, criteria: NoCriteria) -> bool:
    return value is not None


@register_operator(OperatorName.IS_TRUE)
def is_true(value: Any, criteria: NoCriteria) -> bool:
    return value is True


@register_operator(OperatorName.IS_FALSE)
def is_false(value: Any, criteria: NoCriteria) -> bool:
    return value is False


@register_operator(OperatorName.REGEX)
def matches_pattern(value: Any, criteria: PatternCriteria) -> bool:
    text = _as_text(value)
    if text is None:
        return False
    return criteria.compiled().search(text) is not None


def _numeric(compare: Callable[[Decimal, Decimal], bool]) -> OperatorFn:
    def _evaluate(value: Any, criteria: NumericCriteria) -> bool:
        number = to_decimal(value)
        if number is None:
            logger.debug("numeric operand %r is not a number", value)
            return False
        return compare(number, criteria.value)

    return _evaluate


for _name, _compare in (
    (OperatorName.NUM_GT, _op.gt),
    (OperatorName.NUM_GTE, _op.ge),
    (OperatorName.NUM_LT, _op.lt),
    (OperatorName.NUM_LTE, _op.le),
    (OperatorName.NUM_EQ, _op.eq),
    (OperatorName.NUM_NEQ, _op.ne),
):
    register_operator(_name)(_numeric(_compare))


@register_operator(OperatorName.STR_EQ)
def text_equals(value: Any, criteria: TextCriteria) -> bool:
    text = _as_text(value)
    return text is not None and text == criteria.value


@register_operator(OperatorName.STR_NEQ)
def text_not_equals(value: Any, criteria: TextCriteria) -> bool:
    text = _as_text(value)
    return text is not None and text != criteria.value


@register_operator(OperatorName.IN_SET)
def in_set(value: Any, criteria: SetCriteria) -> bool:
    if value is None:
        return False
    return any(_same(value, member) for member in criteria.members)


@register_operator(OperatorName.NOT_IN_SET)
def not_in_set(value: Any, criteria: SetCriteria) -> bool:
    if value is None:
        return False
    return not any(_same(value, member) for member in criteria.members)


@register_operator(OperatorName.BETWEEN)
def between(value: Any, criteria: RangeCriteria) -> bool:
    number = to_decimal(value)
    if number is None:
        return False
    return criteria.lower <= number <= criteria.upper


@register_operator(OperatorName.DATE_TOLERANCE)
def date_tolerance(value: Any, criteria: ToleranceCriteria) -> bool:
    """Absolute day difference between two dates lies within [min, max].

    ``value`` is the ordered mapping of two resolved ``depends`` paths. With a
    single bound the difference only has to reach the minimum.
    """
    if isinstance(value, Mapping):
        dates = list(value.values())
    elif isinstance(value, (list, tuple)):
        dates = list(value)
    else:
        return False
    if len(dates) != 2:
        logger.debug("date_tolerance requires two dates, got %d", len(dates))
        return False

    first, second = _to_datetime(dates[0]), _to_datetime(dates[1])
    limits = criteria.limits()
    if first is None or second is None or limits is None:
        logger.debug("date_tolerance unresolved: dates=%r bounds=%r", dates, criteria.bounds)
        return False

    days = Decimal(str(abs((second - first).total_seconds()))) / SECONDS_PER_DAY
    minimum, maximum = limits
    passed = days >= minimum and (maximum is None or days <= maximum)
    logger.debug("date_tolerance diff=%s days bounds=%s passed=%s", days, limits, passed)
    return passed


_unregistered = registry.missing(name.value for name in OperatorName)
if _unregistered:  # pragma: no cover
    raise RuntimeError(f"Operators without an implementation: {', '.join(_unregistered)}")
