"""Dotted-path lookups against the named datasets of one evaluation call.

``"application.deal.contract_date"`` names the dataset ``application`` and
walks ``deal`` then ``contract_date`` inside it. Missing datasets, missing
keys and out-of-range list indexes all resolve to ``None``; nothing here
raises for absent data and nothing writes to the datasets.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Dict, Iterable, List


PATH_SEPARATOR = "."


def split_path(path: str) -> List[str]:
    return path.split(PATH_SEPARATOR)


def is_qualified_path(path: Any) -> bool:
    """True for ``source.property[.nested...]`` with no empty segment."""
    if not isinstance(path, str):
        return False
    parts = split_path(path.strip())
    return len(parts) >= 2 and all(parts)


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        # isdigit() also accepts superscripts, which int() rejects.
        if segment.isdecimal():
            index = int(segment)
            return current[index] if index < len(current) else None
    return None


def resolve_path(datasets: Mapping[str, Any], path: str) -> Any:
    if not isinstance(path, str) or not path.strip():
        return None
    current: Any = datasets
    for segment in split_path(path.strip()):
        current = _step(current, segment)
        if current is None:
            return None
    return current


def resolve_paths(datasets: Mapping[str, Any], paths: Iterable[str]) -> Dict[str, Any]:
    """Resolve several paths into a dict keyed by the original path strings, in input order."""
    return {path: resolve_path(datasets, path) for path in paths}
