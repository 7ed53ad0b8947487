"""Replay a user-supplied table of candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Sequence

import pandas as pd

from ..errors import InvalidCandidateError
from .base import SearchStrategy, StrategyRegistry

if TYPE_CHECKING:  # pragma: no cover
    from ..instance import SearchInstance


@StrategyRegistry.register
class DesignPointsStrategy(SearchStrategy):
    """Evaluate the rows of ``design`` in order, ``batch_size`` at a time, and nothing else."""

    name = "design_points"

    def __init__(
        self,
        design: pd.DataFrame | Sequence[Mapping[str, Any]],
        *,
        batch_size: int = 1,
        random_seed: int | None = None,
    ) -> None:
        super().__init__(batch_size=batch_size, random_seed=random_seed)
        self.design = _design_rows(design)
        if not self.design:
            raise ValueError("DesignPointsStrategy requires at least one design point")
        self._position = 0

    def reset(self) -> None:
        super().reset()
        self._position = 0

    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        batch: list[dict[str, Any]] = []
        while len(batch) < self.batch_size and self._position < len(self.design):
            row = self.design[self._position]
            self._position += 1
            try:
                batch.append(instance.search_space.validate(row))
            except InvalidCandidateError as exc:
                instance.logger.warning(f"Skipping design point {self._position}: {exc}")
        if not batch:
            return self._finish()
        return batch


def _design_rows(design: pd.DataFrame | Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    if isinstance(design, pd.DataFrame):
        rows = design.to_dict(orient="records")
    else:
        rows = [dict(row) for row in design]
    # NaN cells mark inactive parameters in a table with dependent dimensions.
    return [{key: _plain(value) for key, value in row.items() if not _is_nan(value)} for row in rows]


def _is_nan(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _plain(value: Any) -> Any:
    if hasattr(value, "item"):
        return value.item()
    return value
