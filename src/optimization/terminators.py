"""Stopping rules consulted by the search loop between batches."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Sequence, Type

import time

from .archive import Archive, EvaluationRecord
from .objective import Objective, is_missing


class Terminator(ABC):
    """Base class for all terminators. Configuration is fixed at construction."""

    name: str = "base"

    @abstractmethod
    def should_stop(self, archive: Archive) -> bool:
        """Return True when the search should not start another batch."""

    @property
    def reason(self) -> str:
        """Human-readable description used in the termination log line."""
        return self.name

    def check_objective(self, objective: Objective) -> None:
        """Raise ValueError when the terminator cannot work with ``objective``."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class TerminatorRegistry:
    """Name-keyed registry of terminator classes."""

    _terminators: Dict[str, Type[Terminator]] = {}

    @classmethod
    def register(cls, terminator_class: Type[Terminator]) -> Type[Terminator]:
        """
        Class decorator registering a terminator under its ``name`` attribute.

        Usage:
            @TerminatorRegistry.register
            class MyTerminator(Terminator):
                name = "mine"
        """
        cls._terminators[terminator_class.name] = terminator_class
        return terminator_class

    @classmethod
    def get(cls, name: str) -> Type[Terminator]:
        if name not in cls._terminators:
            available = ", ".join(cls._terminators.keys()) or "none"
            raise ValueError(f"Terminator '{name}' is not registered. Available terminators: {available}")
        return cls._terminators[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> Terminator:
        return cls.get(name)(**config)

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | Terminator) -> Terminator:
        """Build a terminator from ``{"name": ..., **params}``; instances pass through."""
        if isinstance(config, Terminator):
            return config
        params = dict(config)
        try:
            name = params.pop("name")
        except KeyError:
            raise ValueError("Terminator configuration requires a 'name' entry") from None
        if name == "combo":
            params["terminators"] = [cls.from_config(item) for item in params.get("terminators", [])]
        return cls.create(name, **params)

    @classmethod
    def list_terminators(cls) -> List[str]:
        return list(cls._terminators.keys())


@TerminatorRegistry.register
class EvalsTerminator(Terminator):
    """Stop after a fixed number of evaluations."""

    name = "evals"

    def __init__(self, n_evals: int) -> None:
        if isinstance(n_evals, bool) or int(n_evals) != n_evals or n_evals < 0:
            raise ValueError(f"n_evals must be a non-negative integer, got {n_evals!r}")
        self.n_evals = int(n_evals)

    def should_stop(self, archive: Archive) -> bool:
        if len(archive) == 0:
            return False
        return len(archive) >= self.n_evals

    @property
    def reason(self) -> str:
        return f"evaluation budget of {self.n_evals} reached"


@TerminatorRegistry.register
class RunTimeTerminator(Terminator):
    """Stop once the wall-clock time since the archive was created exceeds a budget."""

    name = "run_time"

    def __init__(self, seconds: float) -> None:
        if seconds is None or math.isnan(float(seconds)) or seconds < 0:
            raise ValueError(f"seconds must be a non-negative number, got {seconds!r}")
        self.seconds = float(seconds)

    def should_stop(self, archive: Archive) -> bool:
        if len(archive) == 0:
            return False
        return time.monotonic() - archive.start_time >= self.seconds

    @property
    def reason(self) -> str:
        return f"run time of {self.seconds:g}s exceeded"


@TerminatorRegistry.register
class ClockTimeTerminator(Terminator):
    """Stop once an absolute deadline has passed."""

    name = "clock_time"

    def __init__(self, stop_time: datetime | str) -> None:
        if isinstance(stop_time, str):
            stop_time = datetime.fromisoformat(stop_time)
        if not isinstance(stop_time, datetime):
            raise ValueError(f"stop_time must be a datetime or ISO string, got {stop_time!r}")
        if stop_time.tzinfo is None:
            stop_time = stop_time.astimezone()
        self.stop_time = stop_time

    def should_stop(self, archive: Archive) -> bool:
        if len(archive) == 0:
            return False
        return datetime.now(UTC) >= self.stop_time

    @property
    def reason(self) -> str:
        return f"deadline {self.stop_time.isoformat()} passed"


@TerminatorRegistry.register
class ModelTimeTerminator(Terminator):
    """Stop once the cumulative model training time recorded in the archive exceeds a budget."""

    name = "model_time"

    def __init__(self, seconds: float) -> None:
        if seconds is None or math.isnan(float(seconds)) or seconds < 0:
            raise ValueError(f"seconds must be a non-negative number, got {seconds!r}")
        self.seconds = float(seconds)

    def should_stop(self, archive: Archive) -> bool:
        records = archive.records()
        if not records:
            return False
        return sum(record.runtime_learners for record in records) >= self.seconds

    @property
    def reason(self) -> str:
        return f"model training time of {self.seconds:g}s exceeded"


class _SingleCriterionTerminator(Terminator):
    measure: str | None = None

    def check_objective(self, objective: Objective) -> None:
        if objective.is_multi_criterion and self.measure is None:
            raise ValueError(
                f"Terminator '{self.name}' needs a single-criterion objective or an explicit measure"
            )
        objective.measure(self.measure)


@TerminatorRegistry.register
class PerformanceTerminator(_SingleCriterionTerminator):
    """Stop once the best score is at least as good as a target level."""

    name = "perf_reached"

    def __init__(self, level: float, measure: str | None = None) -> None:
        if level is None or math.isnan(float(level)):
            raise ValueError("level must be a number")
        self.level = float(level)
        self.measure = measure

    def should_stop(self, archive: Archive) -> bool:
        best = archive.best_score(self.measure)
        if best is None:
            return False
        if archive.objective.measure(self.measure).minimize:
            return best <= self.level
        return best >= self.level

    @property
    def reason(self) -> str:
        return f"performance level {self.level:g} reached"


@TerminatorRegistry.register
class StagnationTerminator(_SingleCriterionTerminator):
    """Stop when the last ``iters`` records do not improve the earlier best by more than ``threshold``."""

    name = "stagnation"

    def __init__(self, iters: int = 10, threshold: float = 0.0, measure: str | None = None) -> None:
        if isinstance(iters, bool) or int(iters) != iters or iters < 1:
            raise ValueError(f"iters must be a positive integer, got {iters!r}")
        if threshold is None or math.isnan(float(threshold)) or threshold < 0:
            raise ValueError(f"threshold must be a non-negative number, got {threshold!r}")
        self.iters = int(iters)
        self.threshold = float(threshold)
        self.measure = measure

    def should_stop(self, archive: Archive) -> bool:
        measure = archive.objective.measure(self.measure)
        values = [_score(record, measure.name) for record in archive.records()]
        if len(values) <= self.iters:
            return False
        return _stagnated(values[: -self.iters], values[-self.iters :], measure.minimize, self.threshold)

    @property
    def reason(self) -> str:
        return f"no improvement over the last {self.iters} evaluations"


@TerminatorRegistry.register
class StagnationBatchTerminator(_SingleCriterionTerminator):
    """Stop when the last ``n`` batches do not improve the earlier best by more than ``threshold``."""

    name = "stagnation_batch"

    def __init__(self, n: int = 1, threshold: float = 0.0, measure: str | None = None) -> None:
        if isinstance(n, bool) or int(n) != n or n < 1:
            raise ValueError(f"n must be a positive integer, got {n!r}")
        if threshold is None or math.isnan(float(threshold)) or threshold < 0:
            raise ValueError(f"threshold must be a non-negative number, got {threshold!r}")
        self.n = int(n)
        self.threshold = float(threshold)
        self.measure = measure

    def should_stop(self, archive: Archive) -> bool:
        measure = archive.objective.measure(self.measure)
        records = archive.records()
        if not records:
            return False
        last_batch = records[-1].batch_nr
        if last_batch <= self.n:
            return False
        cutoff = last_batch - self.n
        before = [_score(record, measure.name) for record in records if record.batch_nr <= cutoff]
        recent = [_score(record, measure.name) for record in records if record.batch_nr > cutoff]
        return _stagnated(before, recent, measure.minimize, self.threshold)

    @property
    def reason(self) -> str:
        return f"no improvement over the last {self.n} batches"


@TerminatorRegistry.register
class NoneTerminator(Terminator):
    """Never stops; the strategy ends the search by exhausting its candidates."""

    name = "none"

    def should_stop(self, archive: Archive) -> bool:
        return False


@TerminatorRegistry.register
class ComboTerminator(Terminator):
    """Combine terminators: stop when any (default) or all of them fire."""

    name = "combo"

    def __init__(self, terminators: Sequence[Terminator | Mapping[str, Any]], any: bool = True) -> None:
        members = [TerminatorRegistry.from_config(item) for item in terminators]
        if not members:
            raise ValueError("ComboTerminator requires at least one terminator")
        self.terminators = members
        self.any = bool(any)
        self._fired: list[Terminator] = []

    def check_objective(self, objective: Objective) -> None:
        for terminator in self.terminators:
            terminator.check_objective(objective)

    def should_stop(self, archive: Archive) -> bool:
        decisions = [terminator.should_stop(archive) for terminator in self.terminators]
        self._fired = [terminator for terminator, fired in zip(self.terminators, decisions) if fired]
        return any(decisions) if self.any else all(decisions)

    @property
    def reason(self) -> str:
        fired = self._fired or self.terminators
        joiner = " or " if self.any else " and "
        return joiner.join(terminator.reason for terminator in fired)


def _score(record: EvaluationRecord, name: str) -> Any:
    return None if record.failed else record.scores.get(name)


def _stagnated(before: Sequence[Any], recent: Sequence[Any], minimize: bool, threshold: float) -> bool:
    before_values = [float(value) for value in before if not is_missing(value)]
    recent_values = [float(value) for value in recent if not is_missing(value)]
    if not before_values:
        return False
    if not recent_values:
        return True
    if minimize:
        return min(recent_values) >= min(before_values) - threshold
    return max(recent_values) <= max(before_values) + threshold
