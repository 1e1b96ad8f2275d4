from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import InvalidRequestError
from .evaluator import GuardrailEvaluator
from .models import EvaluationReport, RuleSet, RuleType
from .repository import RuleRepository


logger = logging.getLogger(__name__)

EVALUATION_COMPLETE = "Evaluation Complete!"


class EvaluationRequest(BaseModel):
    """Evaluate the stored (type, area) rule set, or an ad-hoc ``rules`` list."""

    type: Optional[RuleType] = None
    area: Optional[str] = None
    datasets: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    rules: Optional[List[Dict[str, Any]]] = None

    @model_validator(mode="after")
    def _rule_source(self) -> "EvaluationRequest":
        if self.rules is None and (self.type is None or not (self.area or "").strip()):
            raise ValueError("type and area are required unless an ad-hoc rules list is supplied")
        return self

    @property
    def ad_hoc(self) -> bool:
        return self.rules is not None

    @classmethod
    def parse(cls, payload: Union["EvaluationRequest", Mapping[str, Any]]) -> "EvaluationRequest":
        if isinstance(payload, cls):
            return payload
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in exc.errors(include_url=False)
            )
            raise InvalidRequestError(f"Invalid Request Envelope! {problems}") from exc


class EvaluationResponse(BaseModel):
    success: bool
    error: str
    data: Dict[str, Any] = Field(default_factory=dict)


class GuardrailService:
    def __init__(
        self,
        repository: Optional[RuleRepository] = None,
        evaluator: Optional[GuardrailEvaluator] = None,
    ):
        self._repository = repository
        self._evaluator = evaluator or GuardrailEvaluator()

    @property
    def repository(self) -> Optional[RuleRepository]:
        return self._repository

    def load_rule_set(self, request: EvaluationRequest) -> RuleSet:
        if request.ad_hoc:
            if not request.rules:
                raise InvalidRequestError("Ad-hoc evaluation requires at least one rule")
            logger.debug("ad-hoc rule set with %d rule(s)", len(request.rules))
            return RuleSet.from_records(request.rules, type=request.type, area=request.area)
        if self._repository is None:
            raise InvalidRequestError("No rule repository configured; supply an ad-hoc rules list")
        return self._repository.get_rule_set(request.type, request.area)

    def evaluate(self, payload: Union[EvaluationRequest, Mapping[str, Any]]) -> EvaluationReport:
        request = EvaluationRequest.parse(payload)
        rule_set = self.load_rule_set(request)
        logger.debug("datasets loaded: %s", ", ".join(request.datasets) or "<none>")
        return self._evaluator.evaluate(rule_set, request.datasets)

    def respond(self, payload: Union[EvaluationRequest, Mapping[str, Any]]) -> EvaluationResponse:
        """Evaluate and wrap the report in the ``{success, error, data}`` envelope.

        Business failures come back in the envelope with ``success`` false.
        Configuration and request errors propagate to the caller.
        """
        report = self.evaluate(payload)
        return EvaluationResponse(success=report.success, error=EVALUATION_COMPLETE, data=report.to_wire())
