"""Estimators that tune hyperparameters or select features as part of ``fit``."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import numpy as np
from sklearn.base import clone

from ..evaluation.benchmark import FeatureSubsetBenchmark, HyperparameterBenchmark
from ..evaluation.task import Task
from ..optimization.objective import Measure, Objective
from ..optimization.parameter_space import FeatureSpace, ParameterSpace
from ..optimization.strategies import RecursiveEliminationStrategy, SearchStrategy
from ..optimization.terminators import Terminator
from .base import AutoSearchEstimator


class AutoTuner(AutoSearchEstimator):
    """
    Tune the hyperparameters of ``estimator`` and refit it with the best configuration.

    ``search_space`` is a :class:`ParameterSpace` or its configuration mapping
    (``{"parameters": {...}}``). Its ``trafo`` maps candidates to ``set_params``
    arguments before every evaluation and before the final fit.
    """

    def __init__(
        self,
        estimator: Any,
        search_space: ParameterSpace | Mapping[str, Any],
        strategy: str | Mapping[str, Any] | SearchStrategy = "random_search",
        strategy_params: Mapping[str, Any] | None = None,
        terminator: Terminator | Mapping[str, Any] | None = None,
        measures: Sequence[Measure | str | Mapping[str, Any]] | None = None,
        resampling: Any = 3,
        failure_policy: str = "missing",
        n_jobs: int | None = None,
        random_state: int | None = None,
    ) -> None:
        self.estimator = estimator
        self.search_space = search_space
        self.strategy = strategy
        self.strategy_params = strategy_params
        self.terminator = terminator
        self.measures = measures
        self.resampling = resampling
        self.failure_policy = failure_policy
        self.n_jobs = n_jobs
        self.random_state = random_state

    def _build_space(self, task: Task) -> ParameterSpace:
        if isinstance(self.search_space, ParameterSpace):
            return self.search_space
        return ParameterSpace.from_config(self.search_space)

    def _build_evaluator(self, task: Task, objective: Objective) -> HyperparameterBenchmark:
        return HyperparameterBenchmark(
            estimator=self.estimator,
            task=task,
            measures=list(objective.measures),
            resampling=self.resampling,
            n_jobs=self.n_jobs,
            random_state=self.random_state,
        )

    def _fit_final(self, task: Task, space: ParameterSpace, candidate: dict[str, Any]) -> None:
        self.best_params_ = space.transform(candidate)
        model = clone(self.estimator)
        model.set_params(**self.best_params_)
        self.model_ = model.fit(task.X, task.y)

    def _model_input(self, X, rows=None):
        return self._feature_frame(X, rows)


class AutoFeatureSelector(AutoSearchEstimator):
    """
    Select a feature subset for ``estimator`` and refit it on the selected columns.

    The default strategy is forward sequential selection. With ``strategy="rfe"``
    the benchmark collects model importances automatically.
    """

    def __init__(
        self,
        estimator: Any,
        strategy: str | Mapping[str, Any] | SearchStrategy = "sequential",
        strategy_params: Mapping[str, Any] | None = None,
        terminator: Terminator | Mapping[str, Any] | None = None,
        measures: Sequence[Measure | str | Mapping[str, Any]] | None = None,
        resampling: Any = 3,
        max_features: int | None = None,
        failure_policy: str = "missing",
        n_jobs: int | None = None,
        random_state: int | None = None,
    ) -> None:
        self.estimator = estimator
        self.strategy = strategy
        self.strategy_params = strategy_params
        self.terminator = terminator
        self.measures = measures
        self.resampling = resampling
        self.max_features = max_features
        self.failure_policy = failure_policy
        self.n_jobs = n_jobs
        self.random_state = random_state

    def _build_space(self, task: Task) -> FeatureSpace:
        return FeatureSpace(task.feature_names, max_features=self.max_features)

    def _build_evaluator(self, task: Task, objective: Objective) -> FeatureSubsetBenchmark:
        return FeatureSubsetBenchmark(
            estimator=self.estimator,
            task=task,
            measures=list(objective.measures),
            resampling=self.resampling,
            n_jobs=self.n_jobs,
            random_state=self.random_state,
            importance=self._uses_importance(),
        )

    def _uses_importance(self) -> bool:
        if isinstance(self.strategy, SearchStrategy):
            return isinstance(self.strategy, RecursiveEliminationStrategy)
        name = self.strategy.get("name") if isinstance(self.strategy, Mapping) else self.strategy
        return name == RecursiveEliminationStrategy.name

    def _fit_final(self, task: Task, space: FeatureSpace, candidate: dict[str, Any]) -> None:
        self.selected_features_ = space.selected(candidate)
        self.support_ = np.array([name in self.selected_features_ for name in task.feature_names])
        self.model_ = clone(self.estimator).fit(task.select(self.selected_features_), task.y)

    def transform(self, X, rows=None):
        """Restrict ``X`` to the selected feature columns."""
        self._check_fitted()
        return self._model_input(X, rows)

    def get_support(self) -> np.ndarray:
        self._check_fitted()
        return self.support_

    def _model_input(self, X, rows=None):
        return self._feature_frame(X, rows)[self.selected_features_]
