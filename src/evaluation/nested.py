"""Nested resampling: an outer resampling loop around a learner that runs its own inner search."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd
from sklearn.base import clone

from ..optimization.archive import Archive, SearchResult
from ..optimization.objective import Measure, Objective, is_missing
from .benchmark import scorer_for, default_measures
from .task import Task, instantiate_splits

logger = logging.getLogger(__name__)


@dataclass
class FoldResult:
    """Outcome of one outer fold."""

    fold: int
    scores: dict[str, float]
    train_rows: np.ndarray = field(repr=False)
    test_rows: np.ndarray = field(repr=False)
    learner: Any = field(default=None, repr=False)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def archive(self) -> Archive | None:
        """Inner archive of the fold's search, when the learner exposes one."""
        return getattr(self.learner, "archive_", None)

    @property
    def inner_result(self) -> SearchResult | None:
        return getattr(self.learner, "result_", None)


@dataclass
class NestedResampleResult:
    """All outer folds of a nested resampling run."""

    folds: list[FoldResult]
    objective: Objective

    def score_table(self) -> pd.DataFrame:
        rows = []
        for fold in self.folds:
            row: dict[str, Any] = {"fold": fold.fold}
            row.update(fold.scores)
            row["n_inner_evals"] = len(fold.archive) if fold.archive is not None else 0
            row["error"] = fold.error
            rows.append(row)
        return pd.DataFrame(rows, columns=["fold", *self.objective.names, "n_inner_evals", "error"])

    def aggregate(self) -> dict[str, float]:
        """Mean score per measure over the successful folds (NaN when every fold failed)."""
        aggregated: dict[str, float] = {}
        for name in self.objective.names:
            values = [fold.scores[name] for fold in self.folds if not is_missing(fold.scores.get(name))]
            aggregated[name] = float(np.mean(values)) if values else math.nan
        return aggregated

    def inner_archives(self) -> list[Archive | None]:
        return [fold.archive for fold in self.folds]


def nested_resample(
    learner: Any,
    task: Task,
    outer_resampling: Any = 3,
    measures: Iterable[Measure | str | Mapping[str, Any]] | None = None,
    *,
    random_state: int | None = None,
) -> NestedResampleResult:
    """
    Evaluate ``learner`` with an outer resampling loop.

    Every fold trains a fresh clone of ``learner`` on the fold's training rows only,
    so an inner search never shares its archive or terminator with another fold.
    When ``random_state`` is given each clone receives ``random_state + fold``.
    An exception raised while training or scoring a fold marks that fold as failed.
    """
    objective = Objective(measures or default_measures(task))
    scorers = {measure.name: scorer_for(measure) for measure in objective.measures}
    splits = instantiate_splits(task, outer_resampling, random_state=random_state)

    folds: list[FoldResult] = []
    for index, (train_rows, test_rows) in enumerate(splits):
        fold_learner = clone(learner)
        if random_state is not None and "random_state" in fold_learner.get_params(deep=False):
            fold_learner.set_params(random_state=random_state + index)
        train_task = task.subset(train_rows)
        test_task = task.subset(test_rows)
        try:
            if hasattr(fold_learner, "train"):
                fold_learner.train(train_task)
            else:
                fold_learner.fit(train_task.X, train_task.y)
            scores = {name: float(scorer(fold_learner, test_task.X, test_task.y)) for name, scorer in scorers.items()}
        except Exception as exc:
            logger.warning(f"Outer fold {index} failed: {type(exc).__name__}: {exc}")
            folds.append(
                FoldResult(
                    fold=index,
                    scores=objective.missing_scores(),
                    train_rows=np.asarray(train_rows),
                    test_rows=np.asarray(test_rows),
                    learner=fold_learner,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
            continue
        logger.info(f"Outer fold {index}: " + ", ".join(f"{name}={value:.6g}" for name, value in scores.items()))
        folds.append(
            FoldResult(
                fold=index,
                scores=scores,
                train_rows=np.asarray(train_rows),
                test_rows=np.asarray(test_rows),
                learner=fold_learner,
            )
        )
    return NestedResampleResult(folds=folds, objective=objective)
