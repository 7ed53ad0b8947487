"""Supervised learning task: feature table, target and task type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold

TASK_TYPES = ("classification", "regression")


def infer_task_type(y: Sequence | np.ndarray | pd.Series) -> str:
    """
    Roughly infer classification vs regression from the target.

    Non-numeric targets are classification; integer-valued targets with few distinct
    values are classification; everything else is regression.
    """
    values = np.asarray(y)
    if not np.issubdtype(values.dtype, np.number) or values.dtype == bool:
        return "classification"
    n_unique = int(len(np.unique(values)))
    is_int = bool(np.all(np.isclose(values, np.round(values))))
    if is_int and n_unique <= max(20, int(0.1 * len(values))):
        return "classification"
    return "regression"


@dataclass
class Task:
    """Feature table ``X`` and target ``y`` with a stable row order."""

    X: pd.DataFrame
    y: pd.Series
    name: str = "task"
    task_type: str = "auto"

    def __post_init__(self) -> None:
        if not isinstance(self.X, pd.DataFrame):
            self.X = _as_frame(self.X)
        if not isinstance(self.y, pd.Series):
            self.y = pd.Series(np.asarray(self.y), index=self.X.index, name="target")
        if len(self.X) != len(self.y):
            raise ValueError(f"X has {len(self.X)} rows but y has {len(self.y)}")
        self.X.columns = [str(column) for column in self.X.columns]
        if self.task_type == "auto":
            self.task_type = infer_task_type(self.y)
        if self.task_type not in TASK_TYPES:
            raise ValueError(f"task_type must be one of {TASK_TYPES} or 'auto', got {self.task_type!r}")

    @classmethod
    def from_arrays(
        cls,
        X,
        y,
        *,
        feature_names: Iterable[str] | None = None,
        name: str = "task",
        task_type: str = "auto",
    ) -> "Task":
        return cls(X=_as_frame(X, feature_names), y=y, name=name, task_type=task_type)

    @property
    def feature_names(self) -> list[str]:
        return list(self.X.columns)

    @property
    def n_rows(self) -> int:
        return len(self.X)

    @property
    def is_classification(self) -> bool:
        return self.task_type == "classification"

    def subset(self, rows: Sequence[int] | np.ndarray) -> "Task":
        """Positional row subset; the result keeps the task type of the parent."""
        positions = np.asarray(rows, dtype=int)
        return Task(
            X=self.X.iloc[positions].copy(),
            y=self.y.iloc[positions].copy(),
            name=self.name,
            task_type=self.task_type,
        )

    def select(self, features: Sequence[str]) -> pd.DataFrame:
        missing = [feature for feature in features if feature not in self.X.columns]
        if missing:
            raise ValueError(f"Unknown feature(s) for task {self.name}: {', '.join(missing)}")
        return self.X.loc[:, list(features)]


def make_resampling(task: Task, folds: int = 3, *, random_state: int | None = None):
    """Default splitter: stratified k-fold for classification, k-fold for regression."""
    if folds < 2:
        raise ValueError("folds must be at least 2")
    if task.is_classification:
        return StratifiedKFold(n_splits=folds, shuffle=True, random_state=random_state)
    return KFold(n_splits=folds, shuffle=True, random_state=random_state)


def instantiate_splits(task: Task, resampling, *, random_state: int | None = None) -> list[tuple[np.ndarray, np.ndarray]]:
    """
    Materialise train/test index pairs once so that every candidate sees the same folds.

    ``resampling`` may be a number of folds, a scikit-learn splitter or an explicit
    sequence of ``(train, test)`` index pairs.
    """
    if isinstance(resampling, (int, np.integer)) and not isinstance(resampling, bool):
        resampling = make_resampling(task, int(resampling), random_state=random_state)
    if hasattr(resampling, "split"):
        y = task.y if task.is_classification else None
        splits = [(np.asarray(train), np.asarray(test)) for train, test in resampling.split(task.X, y)]
    else:
        splits = [(np.asarray(train), np.asarray(test)) for train, test in resampling]
    if not splits:
        raise ValueError("Resampling produced no train/test splits")
    return splits


def _as_frame(X, feature_names: Iterable[str] | None = None) -> pd.DataFrame:
    if isinstance(X, pd.DataFrame):
        frame = X.copy()
        if feature_names is not None:
            frame.columns = list(feature_names)
        return frame
    values = np.asarray(X)
    if values.ndim != 2:
        raise ValueError(f"X must be two-dimensional, got shape {values.shape}")
    if feature_names is None:
        names = [f"x{i}" for i in range(values.shape[1])]
    else:
        names = list(feature_names)
        if len(names) != values.shape[1]:
            raise ValueError(f"feature_names has {len(names)} entries but X has {values.shape[1]} columns")
    return pd.DataFrame(values, columns=names)
