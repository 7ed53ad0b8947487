"""Shared machinery of the search-backed estimators."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator

from ..evaluation.benchmark import default_measures
from ..evaluation.task import Task
from ..optimization.archive import SearchResult
from ..optimization.instance import SearchInstance
from ..optimization.objective import Objective
from ..optimization.parameter_space import ParameterSpace
from ..optimization.strategies import SearchStrategy, StrategyRegistry
from ..optimization.terminators import Terminator, TerminatorRegistry

logger = logging.getLogger(__name__)

DEFAULT_TERMINATOR = {"name": "evals", "n_evals": 20}


class AutoSearchEstimator(BaseEstimator):
    """
    Base class for estimators whose ``fit`` runs a complete search.

    Subclasses define the search space, the evaluation collaborator and how the
    winning candidate turns into the final model. Every call to :meth:`train`
    builds a new search instance, terminator and strategy.
    """

    def train(self, task: Task) -> "AutoSearchEstimator":
        """Run the search on ``task`` and fit the final model on all of its rows."""
        objective = Objective(self.measures or default_measures(task))
        if objective.is_multi_criterion:
            raise ValueError(f"{type(self).__name__} needs a single-criterion objective, got {objective!r}")

        space = self._build_space(task)
        evaluator = self._build_evaluator(task, objective)
        instance = SearchInstance(
            evaluator,
            space,
            objective,
            self._build_terminator(),
            failure_policy=self.failure_policy,
            logger=logger,
        )
        strategy = self._build_strategy()
        result = strategy.optimize(instance)
        if result.is_empty:
            raise RuntimeError(f"{type(self).__name__}: every candidate failed; no model to fit")

        self.instance_ = instance
        self.archive_ = instance.archive
        self.result_: SearchResult = result
        self.feature_names_in_ = np.asarray(task.feature_names, dtype=object)
        self.n_features_in_ = len(task.feature_names)
        self._fit_final(task, space, result.candidate)
        if hasattr(self.model_, "classes_"):
            self.classes_ = self.model_.classes_
        return self

    def fit(self, X, y) -> "AutoSearchEstimator":
        return self.train(Task.from_arrays(X, y))

    def predict(self, X, rows=None):
        """Predict with the final model; ``X`` may be a Task (optionally restricted to ``rows``) or a table."""
        self._check_fitted()
        return self.model_.predict(self._model_input(X, rows))

    def predict_proba(self, X, rows=None):
        self._check_fitted()
        if not hasattr(self.model_, "predict_proba"):
            raise AttributeError(f"{type(self.model_).__name__} does not support predict_proba")
        return self.model_.predict_proba(self._model_input(X, rows))

    def _build_terminator(self) -> Terminator:
        config = self.terminator if self.terminator is not None else DEFAULT_TERMINATOR
        return copy.deepcopy(TerminatorRegistry.from_config(config))

    def _build_strategy(self) -> SearchStrategy:
        if isinstance(self.strategy, SearchStrategy):
            return copy.deepcopy(self.strategy)
        if isinstance(self.strategy, Mapping):
            params = dict(self.strategy)
            name = params.pop("name")
        else:
            name, params = self.strategy, {}
        params.update(self.strategy_params or {})
        params.setdefault("random_seed", self.random_state)
        return StrategyRegistry.create(name, **params)

    def _feature_frame(self, X, rows=None) -> pd.DataFrame:
        if isinstance(X, Task):
            frame = X.X
        elif isinstance(X, pd.DataFrame):
            frame = X
        else:
            frame = pd.DataFrame(np.asarray(X), columns=list(self.feature_names_in_))
        if rows is not None:
            frame = frame.iloc[np.asarray(rows, dtype=int)]
        return frame

    def _check_fitted(self) -> None:
        if not hasattr(self, "model_"):
            raise RuntimeError(f"{type(self).__name__} must be trained before predicting")

    def _build_space(self, task: Task) -> ParameterSpace:  # pragma: no cover - interface only
        raise NotImplementedError

    def _build_evaluator(self, task: Task, objective: Objective) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError

    def _fit_final(self, task: Task, space: ParameterSpace, candidate: dict[str, Any]) -> None:  # pragma: no cover
        raise NotImplementedError

    def _model_input(self, X, rows=None) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError
