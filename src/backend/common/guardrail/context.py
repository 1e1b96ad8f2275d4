from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable

from .errors import InvalidRequestError
from .resolver import resolve_path, resolve_paths


@dataclass(frozen=True)
class EvaluationContext:
    """Datasets for a single evaluation call, passed explicitly to every step."""

    datasets: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, dataset in self.datasets.items():
            if not isinstance(dataset, Mapping):
                raise InvalidRequestError(f"Dataset '{name}' must be a mapping of field values")
        object.__setattr__(self, "datasets", MappingProxyType(dict(self.datasets)))

    @property
    def dataset_names(self) -> tuple[str, ...]:
        return tuple(self.datasets.keys())

    def resolve(self, path: str) -> Any:
        return resolve_path(self.datasets, path)

    def resolve_many(self, paths: Iterable[str]) -> Dict[str, Any]:
        return resolve_paths(self.datasets, paths)
