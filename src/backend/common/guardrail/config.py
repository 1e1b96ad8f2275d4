from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()

PACKAGE_LOGGER = "common.guardrail"


@dataclass(frozen=True)
class GuardrailSettings:
    rules_path: str
    cache_ttl_seconds: float
    log_level: str


def get_guardrail_settings() -> GuardrailSettings:
    """
    Load guardrail settings from environment variables (a local .env is honoured).

      GUARDRAIL_RULES_PATH, GUARDRAIL_CACHE_TTL_SECONDS, GUARDRAIL_LOG_LEVEL
    """
    rules_path = os.getenv("GUARDRAIL_RULES_PATH", "guardrail_rules.json").strip()
    ttl_raw = os.getenv("GUARDRAIL_CACHE_TTL_SECONDS", "300").strip()
    try:
        cache_ttl_seconds = float(ttl_raw)
    except ValueError as exc:
        raise ValueError(f"GUARDRAIL_CACHE_TTL_SECONDS must be a number, got {ttl_raw!r}") from exc
    if cache_ttl_seconds < 0:
        raise ValueError("GUARDRAIL_CACHE_TTL_SECONDS must not be negative.")

    log_level = os.getenv("GUARDRAIL_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"GUARDRAIL_LOG_LEVEL is not a logging level: {log_level!r}")

    return GuardrailSettings(
        rules_path=rules_path or "guardrail_rules.json",
        cache_ttl_seconds=cache_ttl_seconds,
        log_level=log_level,
    )


def configure_logging(settings: GuardrailSettings) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(settings.log_level)
    if not any(getattr(h, "_guardrail_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s %(name)s - %(message)s", datefmt="%H:%M:%S")
        )
        handler._guardrail_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
