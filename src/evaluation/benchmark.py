"""Evaluation collaborators turning candidate batches into resampled scores."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import numpy as np
from sklearn.base import clone
from sklearn.metrics import get_scorer
from sklearn.model_selection import cross_validate

from ..optimization.instance import EvaluationOutcome
from ..optimization.objective import Measure, Objective
from .task import Task, instantiate_splits

logger = logging.getLogger(__name__)

ObjectiveFn = Callable[[dict[str, Any]], "float | Mapping[str, float]"]


def default_measures(task: Task) -> list[Measure]:
    """Accuracy for classification, R^2 for regression."""
    return [Measure("accuracy")] if task.is_classification else [Measure("r2")]


class FunctionEvaluator:
    """
    Evaluate candidates with a plain Python function.

    The function receives one (transformed) candidate and returns either a scalar,
    recorded under the single measure, or a mapping of measure name -> score.
    Exceptions are captured per candidate.
    """

    def __init__(self, fn: ObjectiveFn, measures: Iterable[Measure | str | Mapping[str, Any]]) -> None:
        self.fn = fn
        self.objective = Objective(measures)

    def evaluate(self, candidates: Sequence[Mapping[str, Any]]) -> List[EvaluationOutcome]:
        outcomes: list[EvaluationOutcome] = []
        for candidate in candidates:
            start = time.perf_counter()
            try:
                value = self.fn(dict(candidate))
                scores = self._scores(value)
            except Exception as exc:
                outcomes.append(
                    EvaluationOutcome(error=f"{type(exc).__name__}: {exc}", runtime_learners=time.perf_counter() - start)
                )
                continue
            outcomes.append(EvaluationOutcome(scores=scores, runtime_learners=time.perf_counter() - start))
        return outcomes

    def _scores(self, value: Any) -> dict[str, float]:
        if isinstance(value, Mapping):
            return {name: float(value[name]) for name in self.objective.names}
        if self.objective.is_multi_criterion:
            raise TypeError("A multi-criterion objective function must return a mapping of scores")
        return {self.objective.primary.name: float(value)}


@dataclass
class ResampleResult:
    """Per-fold detail of one resampled evaluation; referenced from the archive record."""

    fold_scores: Dict[str, List[float]]
    fit_times: List[float]
    score_times: List[float]
    estimators: List[Any] | None = None
    n_features: int | None = None

    @property
    def iterations(self) -> int:
        return len(self.fit_times)

    def aggregate(self) -> dict[str, float]:
        return {name: float(np.mean(values)) for name, values in self.fold_scores.items()}


@dataclass
class _ResampledBenchmark:
    """Shared scikit-learn resampling logic; subclasses decide how a candidate shapes the model and data."""

    estimator: Any
    task: Task
    measures: Sequence[Measure | str | Mapping[str, Any]] | None = None
    resampling: Any = 3
    n_jobs: int | None = None
    random_state: int | None = None
    store_models: bool = False
    splits: list[tuple[np.ndarray, np.ndarray]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.objective = Objective(self.measures or default_measures(self.task))
        self.splits = instantiate_splits(self.task, self.resampling, random_state=self.random_state)
        self._scoring = {measure.name: scorer_for(measure) for measure in self.objective.measures}

    def evaluate(self, candidates: Sequence[Mapping[str, Any]]) -> List[EvaluationOutcome]:
        return [self._evaluate_one(candidate) for candidate in candidates]

    def _evaluate_one(self, candidate: Mapping[str, Any]) -> EvaluationOutcome:
        start = time.perf_counter()
        try:
            estimator, X = self._prepare(candidate)
            cv = cross_validate(
                estimator,
                X,
                self.task.y,
                cv=self.splits,
                scoring=self._scoring,
                n_jobs=self.n_jobs,
                error_score="raise",
                return_estimator=self._needs_models(),
            )
        except Exception as exc:
            logger.debug(f"Resampling failed for {dict(candidate)}: {exc}")
            return EvaluationOutcome(
                error=f"{type(exc).__name__}: {exc}",
                runtime_learners=time.perf_counter() - start,
            )

        fold_scores = {name: [float(value) for value in cv[f"test_{name}"]] for name in self._scoring}
        resample_result = ResampleResult(
            fold_scores=fold_scores,
            fit_times=[float(value) for value in cv["fit_time"]],
            score_times=[float(value) for value in cv["score_time"]],
            estimators=list(cv["estimator"]) if self.store_models and "estimator" in cv else None,
            n_features=X.shape[1],
        )
        return EvaluationOutcome(
            scores=resample_result.aggregate(),
            runtime_learners=float(np.sum(cv["fit_time"])),
            resample_result=resample_result,
            extras=self._extras(candidate, X, cv),
        )

    def _needs_models(self) -> bool:
        return self.store_models

    def _prepare(self, candidate: Mapping[str, Any]) -> tuple[Any, Any]:  # pragma: no cover - interface only
        raise NotImplementedError

    def _extras(self, candidate: Mapping[str, Any], X: Any, cv: Mapping[str, Any]) -> dict[str, Any]:
        return {}


@dataclass
class HyperparameterBenchmark(_ResampledBenchmark):
    """Resample a clone of ``estimator`` with each candidate applied through ``set_params``."""

    def _prepare(self, candidate: Mapping[str, Any]) -> tuple[Any, Any]:
        estimator = clone(self.estimator)
        estimator.set_params(**dict(candidate))
        return estimator, self.task.X


@dataclass
class FeatureSubsetBenchmark(_ResampledBenchmark):
    """
    Resample a clone of ``estimator`` on the features flagged in each candidate.

    With ``importance=True`` the fold models are kept long enough to average their
    ``feature_importances_`` (or absolute ``coef_``) into ``extras["importance"]``.
    """

    importance: bool = False

    def _prepare(self, candidate: Mapping[str, Any]) -> tuple[Any, Any]:
        features = [name for name, included in candidate.items() if included]
        if not features:
            raise ValueError("Feature subset is empty")
        return clone(self.estimator), self.task.select(features)

    def _needs_models(self) -> bool:
        return self.store_models or self.importance

    def _extras(self, candidate: Mapping[str, Any], X: Any, cv: Mapping[str, Any]) -> dict[str, Any]:
        if not self.importance:
            return {}
        per_fold = [_fitted_importance(estimator) for estimator in cv["estimator"]]
        if any(values is None for values in per_fold):
            return {}
        mean_importance = np.mean(np.stack(per_fold, axis=0), axis=0)
        return {"importance": {str(name): float(value) for name, value in zip(X.columns, mean_importance)}}


def scorer_for(measure: Measure) -> Callable[..., float]:
    if callable(measure.scorer):
        return measure.scorer
    return get_scorer(measure.scorer or measure.name)


def _fitted_importance(estimator: Any) -> np.ndarray | None:
    """Importance vector of a fitted model; pipelines are unwrapped to their final step."""
    model = estimator
    if hasattr(model, "steps"):
        model = model.steps[-1][1]
    if hasattr(model, "feature_importances_"):
        return np.asarray(model.feature_importances_, dtype=float)
    if hasattr(model, "coef_"):
        coef = np.abs(np.asarray(model.coef_, dtype=float))
        return coef.mean(axis=0) if coef.ndim > 1 else coef
    return None
