from __future__ import annotations

import json
import logging
import os
import threading
import time
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from .errors import RuleSetNotFoundError, RuleValidationError
from .models import Rule, RuleSet, RuleType, load_rule


logger = logging.getLogger(__name__)


class RuleRepository(Protocol):
    def get_rule_set(self, rule_type: Union[RuleType, str], area: str) -> RuleSet:
        """Return the ordered rule set for (type, area) or raise RuleSetNotFoundError."""
        ...

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        ...

    def save_rule(self, rule: Rule) -> bool:
        """Persist a rule; id 0 means insert. Returns False when the write failed."""
        ...


def rule_set_cache_key(rule_type: RuleType, area: str) -> str:
    return f"{rule_type.value}-{area}".upper()


def _coerce_type(rule_type: Union[RuleType, str]) -> RuleType:
    try:
        return RuleType(rule_type)
    except ValueError as exc:
        raise RuleValidationError(f"Invalid RuleSet Type Argument! {rule_type!r}") from exc


def _record_matches(record: Mapping[str, Any], rule_type: RuleType, area: str) -> bool:
    return (
        str(record.get("type", "")).upper() == rule_type.value
        and str(record.get("area", "")).upper() == area.upper()
    )


class InMemoryRuleRepository:
    """Rule store holding raw rule records, with a per (type, area) TTL cache.

    The cache keeps raw records; fresh Rule objects are built on every read.
    """

    def __init__(
        self,
        records: Iterable[Mapping[str, Any]] = (),
        *,
        cache_ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._records: List[Dict[str, Any]] = [dict(r) for r in records]
        self._cache_ttl = cache_ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Tuple[Dict[str, Any], ...]]] = {}
        self._lock = threading.Lock()

    def _load_records(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._records]

    def _persist(self, records: List[Dict[str, Any]]) -> None:
        self._records = [dict(r) for r in records]

    def _cached(self, key: str) -> Optional[Tuple[Dict[str, Any], ...]]:
        hit = self._cache.get(key)
        if hit is None:
            return None
        stored_at, rows = hit
        if self._clock() - stored_at > self._cache_ttl:
            del self._cache[key]
            return None
        return rows

    def get_rule_set(self, rule_type: Union[RuleType, str], area: str) -> RuleSet:
        rtype = _coerce_type(rule_type)
        key = rule_set_cache_key(rtype, area)
        with self._lock:
            rows = self._cached(key)
            if rows is None:
                logger.debug("rule set cache miss %s", key)
                rows = tuple(r for r in self._load_records() if _record_matches(r, rtype, area))
                if rows and self._cache_ttl > 0:
                    self._cache[key] = (self._clock(), rows)
            else:
                logger.debug("rule set cache hit %s", key)

        if not rows:
            raise RuleSetNotFoundError(rtype.value, area)

        rule_set = RuleSet.from_records(rows, type=rtype, area=area)
        dupes = rule_set.duplicate_sequences()
        if dupes:
            logger.warning("rule set %s has duplicate sequences %s; input order is kept", key, dupes)
        return rule_set

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        for record in self._load_records():
            if int(record.get("id") or 0) == rule_id:
                return load_rule(record)
        return None

    def save_rule(self, rule: Rule) -> bool:
        with self._lock:
            try:
                records = self._load_records()
                now = datetime.now().replace(microsecond=0)
                if rule.id == 0:
                    next_id = max((int(r.get("id") or 0) for r in records), default=0) + 1
                    rule = rule.model_copy(
                        update={"id": next_id, "created_at": rule.created_at or now, "updated_at": now}
                    )
                    records.append(rule.to_record())
                else:
                    rule = rule.model_copy(update={"updated_at": now})
                    records = [r for r in records if int(r.get("id") or 0) != rule.id]
                    records.append(rule.to_record())
                self._persist(records)
            except (OSError, TypeError, ValueError) as exc:
                logger.warning("rule store write failed for rule id=%s: %s", rule.id, exc)
                return False
            self._cache.pop(rule_set_cache_key(rule.type, rule.area), None)
        logger.debug("saved rule id=%s type=%s area=%s", rule.id, rule.type.value, rule.area)
        return True


class JsonFileRuleRepository(InMemoryRuleRepository):
    """Rule records kept as a JSON list on disk."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        cache_ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(cache_ttl_seconds=cache_ttl_seconds, clock=clock)
        self._path = Path(path)

    def _load_records(self) -> List[Dict[str, Any]]:
        if not self._path.exists():
            return []
        with self._path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, list):
            raise RuleValidationError(f"Rule store {self._path} must hold a JSON list of rule records")
        return [dict(r) for r in raw if isinstance(r, Mapping)]

    def _persist(self, records: List[Dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(records, handle, indent=2, default=str)
        os.replace(tmp_path, self._path)
