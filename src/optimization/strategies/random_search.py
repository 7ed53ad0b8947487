"""Random search strategy with reproducible sampling via seed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List

from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..instance import SearchInstance


@StrategyRegistry.register
class RandomSearchStrategy(SearchStrategy):
    """Sample ``batch_size`` independent candidates uniformly at random per iteration."""

    name = "random_search"

    def __init__(
        self,
        *,
        batch_size: int = 1,
        random_seed: int | None = None,
        max_retries: int = 100,
    ) -> None:
        super().__init__(batch_size=batch_size, random_seed=random_seed)
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = int(max_retries)

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        space = instance.search_space
        if not space.parameters:
            raise ValueError("RandomSearchStrategy requires a non-empty search space")

        batch: list[dict[str, Any]] = []
        for _ in range(self.batch_size):
            for _attempt in range(self.max_retries):
                candidate = self._valid(instance, space.sample(self._rng))
                if candidate is not None:
                    batch.append(candidate)
                    break
            else:
                raise ValueError(
                    f"Could not draw a valid candidate in {self.max_retries} attempts; check the space validators"
                )
        return batch
