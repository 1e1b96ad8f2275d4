"""Guardrail rule evaluation engine.

Pure domain logic: rules and datasets in, an evaluation report out.
Storage lives behind the RuleRepository protocol; HTTP and CLI surfaces
live in ``api`` and ``scripts``.
"""

from .context import EvaluationContext
from .errors import EngineError, GuardrailError, InvalidRequestError, RuleSetNotFoundError, RuleValidationError
from .evaluator import GuardrailEvaluator
from .models import (
    EvaluationRecord,
    EvaluationReport,
    OnFail,
    OnPass,
    OperatorName,
    Rule,
    RuleSet,
    RuleType,
    SubRule,
    SubRuleResult,
    load_rule,
)
from .repository import InMemoryRuleRepository, JsonFileRuleRepository, RuleRepository
from .service import EvaluationRequest, EvaluationResponse, GuardrailService
