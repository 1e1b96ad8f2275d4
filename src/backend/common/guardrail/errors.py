from __future__ import annotations

from typing import Any, Optional


class GuardrailError(Exception):
    """Base class for every error the guardrail package raises on purpose."""


class RuleValidationError(GuardrailError, ValueError):
    """A rule definition is malformed; the whole rule set is rejected."""

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        errors: Optional[list[dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.index = index
        self.errors = errors or []


class EngineError(GuardrailError):
    """A rule definition is structurally broken at evaluation time.

    Distinct from a business failure: no report is produced.
    """

    def __init__(
        self,
        message: str,
        *,
        rule_id: Optional[int] = None,
        sequence: Optional[int] = None,
        target: Optional[str] = None,
        operator: Optional[str] = None,
    ):
        super().__init__(message)
        self.rule_id = rule_id
        self.sequence = sequence
        self.target = target
        self.operator = operator

    def __str__(self) -> str:
        base = super().__str__()
        return (
            f"{base} (rule_id={self.rule_id}, sequence={self.sequence}, "
            f"target={self.target!r}, operator={self.operator!r})"
        )


class RuleSetNotFoundError(GuardrailError, LookupError):
    def __init__(self, rule_type: str, area: str):
        super().__init__(f"No RuleSet Found! type: {rule_type} area: {area}")
        self.rule_type = rule_type
        self.area = area


class InvalidRequestError(GuardrailError, ValueError):
    """The evaluation request envelope itself is unusable."""
