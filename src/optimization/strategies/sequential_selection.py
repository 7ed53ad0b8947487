"""Greedy sequential forward / backward feature selection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List

from ..objective import is_missing
from ..parameter_space import FeatureSpace
from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..archive import EvaluationRecord
    from ..instance import SearchInstance


@StrategyRegistry.register
class SequentialSelectionStrategy(SearchStrategy):
    """
    Grow (forward) or shrink (backward) a feature set one feature at a time.

    Every step is one batch holding all single-feature additions or removals of the
    committed set. The best candidate of the step is committed only when it improves
    the committed score by more than ``tolerance``; otherwise the search stops.
    """

    name = "sequential"

    def __init__(
        self,
        *,
        direction: str = "forward",
        max_features: int | None = None,
        tolerance: float = 0.0,
        measure: str | None = None,
        random_seed: int | None = None,
    ) -> None:
        super().__init__(batch_size=1, random_seed=random_seed)
        if direction not in ("forward", "backward"):
            raise ValueError(f"direction must be 'forward' or 'backward', got {direction!r}")
        if max_features is not None and max_features < 1:
            raise ValueError("max_features must be a positive integer")
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        self.direction = direction
        self.max_features = max_features
        self.tolerance = float(tolerance)
        self.measure = measure
        self._selected: list[str] | None = None
        self._score: float | None = None
        self._pending_batch: int | None = None

    @property
    def selected(self) -> list[str]:
        """Features committed so far."""
        return list(self._selected or [])

    def reset(self) -> None:
        super().reset()
        self._selected = None
        self._score = None
        self._pending_batch = None

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        space = instance.search_space
        if not isinstance(space, FeatureSpace):
            raise TypeError("SequentialSelectionStrategy requires a FeatureSpace")
        limit = space.max_features if self.max_features is None else min(self.max_features, space.max_features)

        if self._selected is None:
            if self.direction == "forward":
                self._selected = []
                return self._step(space, limit, instance)
            self._selected = list(space.features)
            self._pending_batch = instance.archive.n_batches + 1
            return [space.candidate_from(self._selected)]

        if self._pending_batch is not None:
            if not self._commit(instance, instance.archive.batch(self._pending_batch)):
                return self._finish("no improvement")
        return self._step(space, limit, instance)

    def _step(self, space: FeatureSpace, limit: int, instance: "SearchInstance") -> List[dict[str, Any]]:
        assert self._selected is not None
        if self.direction == "forward":
            if len(self._selected) >= limit:
                return self._finish("max_features reached")
            subsets = [
                [*self._selected, feature] for feature in space.features if feature not in self._selected
            ]
        else:
            if len(self._selected) <= 1:
                return self._finish("single feature left")
            subsets = [
                [name for name in self._selected if name != feature] for feature in self._selected
            ]
        if not subsets:
            return self._finish()
        batch = [space.candidate_from(subset) for subset in subsets]
        self._pending_batch = instance.archive.n_batches + 1
        return batch

    def _commit(self, instance: "SearchInstance", records: List["EvaluationRecord"]) -> bool:
        measure = instance.objective.measure(self.measure)
        space = instance.search_space
        assert isinstance(space, FeatureSpace)
        best: "EvaluationRecord | None" = None
        for record in records:
            value = record.scores.get(measure.name)
            if record.failed or is_missing(value):
                continue
            if best is None or measure.is_better(value, best.scores[measure.name]):
                best = record
        self._pending_batch = None
        if best is None:
            return False
        value = best.scores[measure.name]
        if self._score is not None and measure.improvement(value, self._score) <= self.tolerance:
            return False
        self._selected = space.selected(best.candidate)
        self._score = value
        return True
