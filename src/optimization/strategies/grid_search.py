"""Deterministic grid-search strategy."""

from __future__ import annotations

from itertools import islice
from typing import TYPE_CHECKING, Any, Iterator, List, Mapping, Sequence

from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..instance import SearchInstance


@StrategyRegistry.register
class GridSearchStrategy(SearchStrategy):
    """
    Traverse the cartesian product of the discretised search space exactly once.

    Numeric ranges without a step are split into ``resolution`` points;
    ``param_resolutions`` overrides the resolution per parameter and ``grid``
    replaces the candidate values of selected parameters.
    """

    name = "grid_search"

    def __init__(
        self,
        *,
        resolution: int = 10,
        param_resolutions: Mapping[str, int] | None = None,
        grid: Mapping[str, Sequence[Any]] | None = None,
        batch_size: int = 1,
        random_seed: int | None = None,
    ) -> None:
        super().__init__(batch_size=batch_size, random_seed=random_seed)
        if resolution < 1:
            raise ValueError("resolution must be at least 1")
        self.resolution = int(resolution)
        self.param_resolutions = dict(param_resolutions or {})
        self._grid_override = {name: tuple(values) for name, values in (grid or {}).items()}
        self._iterator: Iterator[dict[str, Any]] | None = None

    def reset(self) -> None:
        super().reset()
        self._iterator = None

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        if self._iterator is None:
            space = instance.search_space
            if not space.parameters:
                raise ValueError("GridSearchStrategy requires at least one parameter to explore")
            resolution = {
                name: self.param_resolutions.get(name, self.resolution)
                for name, definition in space.parameters.items()
                if definition.step is None or name in self.param_resolutions
            }
            self._iterator = space.iter_grid(self._grid_override, resolution=resolution)
        batch = list(islice(self._iterator, self.batch_size))
        if not batch:
            return self._finish()
        return batch
