from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from common.guardrail.catalog import build_catalog
from common.guardrail.config import configure_logging, get_guardrail_settings
from common.guardrail.errors import (
    GuardrailError,
    InvalidRequestError,
    RuleSetNotFoundError,
    RuleValidationError,
)
from common.guardrail.models import load_rule
from common.guardrail.repository import JsonFileRuleRepository
from common.guardrail.service import (
    EvaluationRequest,
    EvaluationResponse,
    GuardrailService,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guardrail", tags=["guardrail"])


@lru_cache(maxsize=1)
def _default_service() -> GuardrailService:
    settings = get_guardrail_settings()
    configure_logging(settings)
    repository = JsonFileRuleRepository(settings.rules_path, cache_ttl_seconds=settings.cache_ttl_seconds)
    return GuardrailService(repository)


def get_guardrail_service() -> GuardrailService:
    return _default_service()


def _http_error(exc: GuardrailError) -> HTTPException:
    if isinstance(exc, RuleSetNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RuleValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InvalidRequestError):
        return HTTPException(status_code=400, detail=str(exc))
    # EngineError and anything else unexpected from the engine.
    return HTTPException(status_code=500, detail=str(exc))


@router.post("/evaluate", response_model=EvaluationResponse)
def evaluate(
    request: EvaluationRequest,
    service: GuardrailService = Depends(get_guardrail_service),
):
    try:
        return service.respond(request)
    except GuardrailError as exc:
        raise _http_error(exc) from exc


@router.get("/rules/{rule_type}/{area}")
def get_rule_set(
    rule_type: str,
    area: str,
    service: GuardrailService = Depends(get_guardrail_service),
):
    repository = service.repository
    if repository is None:
        raise HTTPException(status_code=500, detail="No rule repository configured.")
    try:
        rule_set = repository.get_rule_set(rule_type.upper(), area)
    except GuardrailError as exc:
        raise _http_error(exc) from exc
    return {
        "type": rule_set.type.value if rule_set.type else None,
        "area": rule_set.area,
        "rules": [rule.to_record() for rule in rule_set.rules],
    }


@router.get("/rules/{rule_id}")
def get_rule(
    rule_id: int,
    service: GuardrailService = Depends(get_guardrail_service),
):
    repository = service.repository
    if repository is None:
        raise HTTPException(status_code=500, detail="No rule repository configured.")
    rule = repository.get_rule(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"No rule with id {rule_id}.")
    return rule.to_record()


@router.post("/rules", status_code=201)
def add_rule(
    record: dict[str, Any] = Body(...),
    service: GuardrailService = Depends(get_guardrail_service),
):
    repository = service.repository
    if repository is None:
        raise HTTPException(status_code=500, detail="No rule repository configured.")
    try:
        rule = load_rule(record)
    except RuleValidationError as exc:
        raise _http_error(exc) from exc
    if not repository.save_rule(rule):
        raise HTTPException(status_code=500, detail="Rule could not be saved.")
    logger.info("rule saved for %s-%s sequence %s", rule.type.value, rule.area, rule.sequence)
    return {"saved": True}


@router.get("/operators")
def list_operators():
    return [entry.model_dump() for entry in build_catalog()]
