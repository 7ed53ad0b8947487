"""Exhaustive enumeration of a discrete search space."""

from __future__ import annotations

from itertools import combinations, islice
from typing import TYPE_CHECKING, Any, Iterator, List

from ..parameter_space import FeatureSpace, ParameterSpace
from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..instance import SearchInstance


@StrategyRegistry.register
class ExhaustiveSearchStrategy(SearchStrategy):
    """
    Visit every candidate of a discrete space exactly once, in a fixed order.

    Feature spaces are enumerated as subsets of size 1 up to ``max_features``
    (smaller subsets first, combinations in feature order). Other spaces are
    enumerated as their full grid.
    """

    name = "exhaustive_search"

    def __init__(
        self,
        *,
        max_features: int | None = None,
        batch_size: int = 1,
        random_seed: int | None = None,
    ) -> None:
        super().__init__(batch_size=batch_size, random_seed=random_seed)
        if max_features is not None and max_features < 1:
            raise ValueError("max_features must be a positive integer")
        self.max_features = max_features
        self._iterator: Iterator[dict[str, Any]] | None = None

    def reset(self) -> None:
        super().reset()
        self._iterator = None

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        if self._iterator is None:
            self._iterator = self._enumerate(instance.search_space)
        batch = list(islice(self._iterator, self.batch_size))
        if not batch:
            return self._finish()
        return batch

    def _enumerate(self, space: ParameterSpace) -> Iterator[dict[str, Any]]:
        if isinstance(space, FeatureSpace):
            limit = space.max_features
            if self.max_features is not None:
                limit = min(limit, self.max_features)
            for size in range(1, limit + 1):
                for subset in combinations(space.features, size):
                    yield space.candidate_from(subset)
            return
        yield from space.iter_grid()
