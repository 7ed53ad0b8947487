"""Search instance: the black-box objective that evaluates batches and fills the archive."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from .archive import Archive, EvaluationRecord, SearchResult
from .errors import EvaluationError
from .objective import Objective, complete, is_missing
from .parameter_space import ParameterSpace
from .terminators import Terminator, TerminatorRegistry

FAILURE_POLICIES = ("missing", "worst")


@dataclass
class EvaluationOutcome:
    """What the evaluation collaborator reports for one candidate."""

    scores: dict[str, float] = field(default_factory=dict)
    runtime_learners: float = 0.0
    error: str | None = None
    resample_result: Any = None
    extras: dict[str, Any] = field(default_factory=dict)


class CandidateEvaluator(Protocol):
    """Collaborator turning a batch of transformed candidates into resampled scores."""

    def evaluate(self, candidates: Sequence[Mapping[str, Any]]) -> Sequence[EvaluationOutcome]:
        """Return exactly one outcome per candidate, in order."""


BatchCallback = Callable[["SearchInstance", list[EvaluationRecord]], None]


class SearchInstance:
    """
    Bind a search space, an objective, an archive and a terminator to an evaluation collaborator.

    The instance owns its archive and terminator for its whole lifetime; a new search
    always needs a new instance.
    """

    def __init__(
        self,
        evaluator: CandidateEvaluator,
        search_space: ParameterSpace,
        objective: Objective | Iterable[Any],
        terminator: Terminator | Mapping[str, Any],
        *,
        failure_policy: str = "missing",
        logger: logging.Logger | None = None,
        callbacks: Iterable[BatchCallback] = (),
    ) -> None:
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"failure_policy must be one of {FAILURE_POLICIES}, got {failure_policy!r}")
        self.evaluator = evaluator
        self.search_space = search_space
        self.objective = objective if isinstance(objective, Objective) else Objective(objective)
        self.terminator = TerminatorRegistry.from_config(terminator)
        self.terminator.check_objective(self.objective)
        self.failure_policy = failure_policy
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.callbacks = tuple(callbacks)
        self.archive = Archive(self.objective)

    def __repr__(self) -> str:
        return (
            f"SearchInstance(dimensions={len(self.search_space.parameters)}, objective={self.objective!r}, "
            f"terminator={self.terminator!r}, n_evals={self.n_evals})"
        )

    @property
    def n_evals(self) -> int:
        return len(self.archive)

    @property
    def is_terminated(self) -> bool:
        return self.terminator.should_stop(self.archive)

    @property
    def result(self) -> SearchResult:
        """Best-known result, always recomputed from the archive."""
        return self.archive.best()

    def evaluate_batch(self, candidates: Sequence[Mapping[str, Any]]) -> list[EvaluationRecord]:
        """
        Evaluate a batch of candidates and append the records to the archive.

        Args:
            candidates: Candidates in search-space values.

        Returns:
            The records appended to the archive, in candidate order.

        Raises:
            InvalidCandidateError: When a candidate violates the search space; nothing is evaluated.
            EvaluationError: When the collaborator does not return one outcome per candidate.
        """
        validated = [self.search_space.validate(candidate) for candidate in candidates]
        if not validated:
            return []
        transformed = [self.search_space.transform(candidate) for candidate in validated]

        outcomes = list(self.evaluator.evaluate(transformed))
        if len(outcomes) != len(validated):
            raise EvaluationError(
                f"Evaluator returned {len(outcomes)} outcomes for a batch of {len(validated)} candidates"
            )

        batch_nr = self.archive.n_batches + 1
        records = [
            self._to_record(candidate, values, outcome, batch_nr)
            for candidate, values, outcome in zip(validated, transformed, outcomes)
        ]
        self.archive.append(records)
        self._log_batch(records)
        for callback in self.callbacks:
            callback(self, records)
        return records

    def _to_record(
        self,
        candidate: dict[str, Any],
        transformed: dict[str, Any],
        outcome: EvaluationOutcome,
        batch_nr: int,
    ) -> EvaluationRecord:
        error = outcome.error
        scores = {name: outcome.scores.get(name, math.nan) for name in self.objective.names}
        if error is None and not complete(scores, self.objective.names):
            error = "evaluator returned no score for: " + ", ".join(
                name for name in self.objective.names if is_missing(scores[name])
            )
        if error is not None:
            self.logger.warning(f"[batch {batch_nr}] candidate {candidate} failed: {error}")
            if self.failure_policy == "worst":
                scores = self.objective.worst_scores()
            else:
                scores = self.objective.missing_scores()
        return EvaluationRecord(
            candidate=dict(candidate),
            scores={name: float(value) for name, value in scores.items()},
            batch_nr=batch_nr,
            transformed=dict(transformed),
            runtime_learners=float(outcome.runtime_learners or 0.0),
            error=error,
            resample_result=outcome.resample_result,
            extras=dict(outcome.extras),
        )

    def _log_batch(self, records: list[EvaluationRecord]) -> None:
        measure = self.objective.primary
        batch_scores = [
            record.scores[measure.name]
            for record in records
            if not record.failed and complete(record.scores, [measure.name])
        ]
        if batch_scores:
            batch_best = min(batch_scores) if measure.minimize else max(batch_scores)
            batch_label = f"{batch_best:.6g}"
        else:
            batch_label = "n/a"
        overall = self.archive.best_score(measure.name)
        overall_label = f"{overall:.6g}" if overall is not None else "n/a"
        failures = sum(1 for record in records if record.failed)
        self.logger.info(
            f"[batch {records[0].batch_nr}] evaluated {len(records)} candidate(s), "
            f"{failures} failed; batch best {measure.name}={batch_label}, "
            f"overall best {measure.name}={overall_label}"
        )
