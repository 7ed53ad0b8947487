"""Recursive feature elimination driven by an importance signal."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Callable, List, Mapping

from ..parameter_space import FeatureSpace
from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..archive import EvaluationRecord
    from ..instance import SearchInstance

ImportanceFn = Callable[["EvaluationRecord"], Mapping[str, float]]


@StrategyRegistry.register
class RecursiveEliminationStrategy(SearchStrategy):
    """
    Start from the full feature set and repeatedly drop the least important features.

    Each round evaluates one subset. Importances are read from the record extras
    (``extras["importance"]``) unless an ``importance`` callable is supplied. With
    ``recursive=True`` the ranking is refreshed from every round's model; otherwise
    the ranking of the full-set model is used throughout.
    """

    name = "rfe"

    def __init__(
        self,
        *,
        n_features: int = 1,
        feature_fraction: float = 0.5,
        recursive: bool = False,
        importance: ImportanceFn | None = None,
        random_seed: int | None = None,
    ) -> None:
        super().__init__(batch_size=1, random_seed=random_seed)
        if n_features < 1:
            raise ValueError("n_features must be a positive integer")
        if not 0.0 < feature_fraction < 1.0:
            raise ValueError("feature_fraction must lie strictly between 0 and 1")
        self.n_features = int(n_features)
        self.feature_fraction = float(feature_fraction)
        self.recursive = bool(recursive)
        self.importance = importance
        self._current: list[str] | None = None
        self._ranking: dict[str, float] | None = None

    def reset(self) -> None:
        super().reset()
        self._current = None
        self._ranking = None

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        space = instance.search_space
        if not isinstance(space, FeatureSpace):
            raise TypeError("RecursiveEliminationStrategy requires a FeatureSpace")

        if self._current is None:
            self._current = list(space.features)
            return [space.candidate_from(self._current)]

        if len(self._current) <= self.n_features:
            return self._finish("minimum subset size reached")

        records = instance.archive.records()
        last = records[-1] if records else None
        if last is None or last.failed:
            return self._finish("importance unavailable for the last subset")
        importance = self._importance_of(last)
        if self._ranking is None or self.recursive:
            self._ranking = importance

        n_keep = max(self.n_features, int(math.floor(len(self._current) * (1.0 - self.feature_fraction))))
        if n_keep >= len(self._current):
            n_keep = len(self._current) - 1
        ranked = sorted(
            self._current,
            key=lambda feature: (self._ranking.get(feature, -math.inf), -self._current.index(feature)),
            reverse=True,
        )
        keep = set(ranked[:n_keep])
        self._current = [feature for feature in space.features if feature in keep]
        return [space.candidate_from(self._current)]

    def _importance_of(self, record: "EvaluationRecord") -> dict[str, float]:
        if self.importance is not None:
            values = self.importance(record)
        else:
            values = record.extras.get("importance")
        if not values:
            raise ValueError(
                "RecursiveEliminationStrategy needs feature importances; evaluate with "
                "importance enabled or pass an importance callable"
            )
        return {str(name): float(value) for name, value in dict(values).items()}
