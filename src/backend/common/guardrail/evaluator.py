from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

from .context import EvaluationContext
from .criteria import NoCriteria
from .errors import EngineError
from .models import (
    ALL_RULES_PASSED_NOTICE,
    RULE_SET_CONCLUSION,
    EvaluationRecord,
    EvaluationReport,
    Rule,
    RuleSet,
    SubRule,
    SubRuleResult,
)
from .operators import OperatorFn, OperatorRegistry, registry
from .resolver import is_qualified_path


logger = logging.getLogger(__name__)


class ConclusionState(str, Enum):
    PENDING = "PENDING"
    CONCLUDED = "CONCLUDED"


@dataclass(frozen=True)
class Conclusion:
    state: ConclusionState
    success: bool = False
    by: Union[int, str, None] = None
    notice: Optional[str] = None


def conclude(evaluations: Sequence[EvaluationRecord]) -> Conclusion:
    """Walk records in sequence order; the first failing rule or sub-rule concludes.

    Stays PENDING only when there is nothing to walk.
    """
    for record in evaluations:
        if not record.passed:
            return Conclusion(ConclusionState.CONCLUDED, False, record.sequence, record.fail_message)
        for sub_result in record.sub_rule_results:
            if not sub_result.passed:
                return Conclusion(
                    ConclusionState.CONCLUDED, False, record.sequence, sub_result.fail_message
                )
    if evaluations:
        return Conclusion(ConclusionState.CONCLUDED, True, RULE_SET_CONCLUSION, ALL_RULES_PASSED_NOTICE)
    return Conclusion(ConclusionState.PENDING)


def _operator_name(value: Any) -> str:
    return getattr(value, "value", value)


class GuardrailEvaluator:
    """Evaluates an ordered rule set against the datasets of one call.

    Holds no per-call state, so one instance can serve concurrent calls.
    """

    def __init__(self, operators: Optional[OperatorRegistry] = None):
        self._operators = operators if operators is not None else registry

    def evaluate(
        self,
        rules: Union[RuleSet, Iterable[Rule]],
        datasets: Union[EvaluationContext, Mapping[str, Mapping[str, Any]]],
    ) -> EvaluationReport:
        rule_set = rules if isinstance(rules, RuleSet) else RuleSet(rules=tuple(rules))
        ctx = datasets if isinstance(datasets, EvaluationContext) else EvaluationContext(datasets)

        evaluations = tuple(self.evaluate_rule(rule, ctx) for rule in rule_set.rules)
        conclusion = conclude(evaluations)
        if conclusion.state is not ConclusionState.CONCLUDED:
            logger.error(
                "Evaluation reached the end of %d rule(s) without a conclusion (type=%s area=%s)",
                len(evaluations),
                rule_set.type,
                rule_set.area,
            )
            raise EngineError("Evaluation ended without a conclusion; the rule set is empty")

        logger.debug(
            "rule set type=%s area=%s concluded by %s success=%s",
            rule_set.type,
            rule_set.area,
            conclusion.by,
            conclusion.success,
        )
        return EvaluationReport(
            success=conclusion.success,
            evaluations=evaluations,
            conclusion_by=conclusion.by,
            conclusion_notice=conclusion.notice or "",
        )

    def evaluate_rule(self, rule: Rule, ctx: EvaluationContext) -> EvaluationRecord:
        operator = _operator_name(rule.operator)
        fn = self._lookup(operator, rule)

        value = ctx.resolve(rule.target)
        passed = bool(fn(value, rule.criteria.bind(ctx.resolve)))
        logger.debug(
            "%s `%s` vals:[%r] crit:[%r] passed=%s",
            rule.target,
            operator,
            value,
            rule.criteria.raw,
            passed,
        )

        sub_results: tuple[SubRuleResult, ...] = ()
        if passed and rule.sub_rules:
            sub_results = tuple(self._evaluate_sub_rule(rule, sub, ctx) for sub in rule.sub_rules)

        return EvaluationRecord(
            sequence=rule.sequence,
            target=rule.target,
            value=value,
            operator=operator,
            criteria=rule.criteria.raw,
            passed=passed,
            sub_rule_results=sub_results,
            on_fail=rule.on_fail,
            on_pass=rule.on_pass,
            pass_message=rule.pass_message,
            fail_message=rule.fail_message,
            warn_message=rule.warn_message,
        )

    def _evaluate_sub_rule(self, rule: Rule, sub: SubRule, ctx: EvaluationContext) -> SubRuleResult:
        if not sub.operator_name:
            raise self._error("SubRule operator property is required!", rule)
        fn = self._lookup(sub.operator_name, rule)

        if not sub.depends:
            raise self._error("SubRule depends property is required!", rule, sub.operator_name)
        for path in sub.depends:
            if not is_qualified_path(path):
                raise self._error(
                    f"SubRule depends INVALID! Requires `source.property`, got {path!r}",
                    rule,
                    sub.operator_name,
                )
        if sub.on_fail is None:
            raise self._error("SubRule on_fail property is required!", rule, sub.operator_name)
        if sub.fail_message is None:
            raise self._error("SubRule fail property is required!", rule, sub.operator_name)

        resolved = ctx.resolve_many(sub.depends)
        value = resolved[sub.depends[0]] if len(sub.depends) == 1 else resolved
        criteria = sub.criteria if sub.criteria is not None else NoCriteria()
        passed = bool(fn(value, criteria.bind(ctx.resolve)))
        logger.debug(
            "sub-rule of %s `%s` depends:%r crit:[%r] passed=%s",
            rule.target,
            sub.operator_name,
            resolved,
            criteria.raw,
            passed,
        )

        return SubRuleResult(
            passed=passed,
            criteria=criteria.raw,
            operator_name=sub.operator_name,
            depends=resolved,
            on_fail=sub.on_fail,
            fail_message=sub.fail_message,
        )

    def _lookup(self, operator: str, rule: Rule) -> OperatorFn:
        fn = self._operators.get(operator)
        if fn is None:
            raise self._error(f"Operator {operator} is not defined.", rule, operator)
        return fn

    @staticmethod
    def _error(message: str, rule: Rule, operator: Optional[str] = None) -> EngineError:
        err = EngineError(
            f"Evaluate FAILURE! {message}",
            rule_id=rule.id,
            sequence=rule.sequence,
            target=rule.target,
            operator=operator or _operator_name(rule.operator),
        )
        logger.error("%s", err)
        return err
