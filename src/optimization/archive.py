"""Append-only archive of evaluated candidates and the results derived from it."""

from __future__ import annotations

import json
import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, MutableSequence, Sequence

import pandas as pd

from .objective import Objective, complete, is_missing


@dataclass(frozen=True)
class EvaluationRecord:
    """Outcome of evaluating one candidate within one batch."""

    candidate: Mapping[str, Any]
    scores: Mapping[str, float]
    batch_nr: int
    transformed: Mapping[str, Any] = field(default_factory=dict)
    runtime_learners: float = 0.0
    error: str | None = None
    resample_result: Any = None
    extras: Mapping[str, Any] = field(default_factory=dict)
    uhash: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def __post_init__(self) -> None:
        # read-only views over private copies
        for name in ("candidate", "scores", "transformed", "extras"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self, *, measures: Sequence[str] | None = None) -> dict[str, Any]:
        """Convert the record into a JSON serialisable dictionary."""
        return {
            "candidate": dict(self.candidate),
            "transformed": dict(self.transformed),
            "scores": _filter_scores(self.scores, measures),
            "batch_nr": self.batch_nr,
            "runtime_learners": self.runtime_learners,
            "error": self.error,
            "uhash": self.uhash,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SearchResult:
    """
    Best-known outcome of a search, derived from an archive.

    Single-criterion searches carry at most one record; multi-criterion searches
    carry the Pareto front in insertion order.
    """

    records: tuple[EvaluationRecord, ...]
    objective: Objective

    @property
    def is_multi_criterion(self) -> bool:
        return self.objective.is_multi_criterion

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def record(self) -> EvaluationRecord:
        if self.is_multi_criterion:
            raise ValueError("A multi-criterion result has a front, not a single record")
        if not self.records:
            raise ValueError("No successful evaluation in the archive")
        return self.records[0]

    @property
    def candidate(self) -> dict[str, Any]:
        return dict(self.record.candidate)

    @property
    def scores(self) -> dict[str, float]:
        return dict(self.record.scores)

    @property
    def best(self) -> dict[str, Any]:
        """Candidate values merged with their scores (single-criterion only)."""
        return {**self.record.candidate, **self.record.scores}

    @property
    def front(self) -> list[dict[str, Any]]:
        """Candidate values merged with scores for every member of the result."""
        return [{**record.candidate, **record.scores} for record in self.records]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.front)


class Archive:
    """Thread-safe, append-only log of evaluation records for one search instance."""

    def __init__(self, objective: Objective) -> None:
        self.objective = objective
        self.start_time = time.monotonic()
        self._items: MutableSequence[EvaluationRecord] = []
        self._n_batches = 0
        self._lock = Lock()

    def __iter__(self) -> Iterator[EvaluationRecord]:
        return iter(self.records())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, records: Sequence[EvaluationRecord]) -> None:
        """Append one batch; readers observe either none or all of its records."""
        batch = list(records)
        if not batch:
            return
        with self._lock:
            expected = self._n_batches + 1
            for record in batch:
                if record.batch_nr != expected:
                    raise ValueError(
                        f"Record tagged with batch {record.batch_nr} appended as batch {expected}"
                    )
            self._items.extend(batch)
            self._n_batches = expected

    @property
    def n_batches(self) -> int:
        with self._lock:
            return self._n_batches

    def records(self) -> List[EvaluationRecord]:
        """Read-only snapshot in insertion order."""
        with self._lock:
            return list(self._items)

    def batch(self, batch_nr: int) -> List[EvaluationRecord]:
        return [record for record in self.records() if record.batch_nr == batch_nr]

    def successful(self) -> List[EvaluationRecord]:
        """Records that did not fail, in insertion order."""
        return [record for record in self.records() if not record.failed]

    def scores(self, measure: str | None = None) -> List[float]:
        """Scores of ``measure`` in insertion order; failed records and missing scores excluded."""
        name = self.objective.measure(measure).name
        return [record.scores[name] for record in self.successful() if not is_missing(record.scores.get(name))]

    def best_score(self, measure: str | None = None) -> float | None:
        target = self.objective.measure(measure)
        values = self.scores(target.name)
        if not values:
            return None
        return min(values) if target.minimize else max(values)

    def best(self) -> SearchResult:
        """Single best record (first inserted wins ties) or the Pareto front."""
        candidates = [record for record in self.successful() if complete(record.scores, self.objective.names)]
        if not self.objective.is_multi_criterion:
            measure = self.objective.primary
            best_record: EvaluationRecord | None = None
            for record in candidates:
                if best_record is None or measure.is_better(record.scores[measure.name], best_record.scores[measure.name]):
                    best_record = record
            return SearchResult(records=(best_record,) if best_record else (), objective=self.objective)

        front = [
            record
            for record in candidates
            if not any(self.objective.dominates(other.scores, record.scores) for other in candidates)
        ]
        return SearchResult(records=tuple(front), objective=self.objective)

    def top_n(self, n: int = 10, *, measure: str | None = None) -> Sequence[EvaluationRecord]:
        target = self.objective.measure(measure)
        ranked = [record for record in self.successful() if not is_missing(record.scores.get(target.name))]
        return sorted(
            ranked,
            key=lambda record: record.scores[target.name],
            reverse=not target.minimize,
        )[:n]

    def data(self) -> pd.DataFrame:
        """One row per record: candidate dimensions, measures, batch number and bookkeeping columns."""
        rows = self._rows()
        columns = self._columns(rows)
        return pd.DataFrame(rows, columns=columns)

    def export_csv(self, destination: str | Path, *, measures: Sequence[str] | None = None) -> Path:
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        table = self.data()
        if measures:
            dropped = [name for name in self.objective.names if name not in measures]
            table = table.drop(columns=dropped)
        table.to_csv(destination_path, index=False)
        return destination_path

    def export_json(self, destination: str | Path, *, measures: Sequence[str] | None = None) -> Path:
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)

        payload = [record.to_dict(measures=measures) for record in self.records()]
        destination_path.write_text(json.dumps(payload, indent=2, default=_json_default), encoding="utf-8")
        return destination_path

    def _rows(self) -> List[Dict[str, Any]]:
        rows: list[Dict[str, Any]] = []
        for record in self.records():
            row: Dict[str, Any] = dict(record.candidate)
            for name in self.objective.names:
                row[name] = record.scores.get(name, math.nan)
            row["batch_nr"] = record.batch_nr
            row["runtime_learners"] = record.runtime_learners
            row["error"] = record.error
            row["uhash"] = record.uhash
            row["timestamp"] = record.timestamp
            rows.append(row)
        return rows

    def _columns(self, rows: List[Dict[str, Any]]) -> list[str]:
        bookkeeping = ["batch_nr", "runtime_learners", "error", "uhash", "timestamp"]
        reserved = set(self.objective.names) | set(bookkeeping)
        dimensions: dict[str, None] = {}
        for row in rows:
            for key in row:
                if key not in reserved:
                    dimensions.setdefault(key, None)
        return [*dimensions, *self.objective.names, *bookkeeping]


def _filter_scores(scores: Mapping[str, Any], selected: Sequence[str] | None) -> Dict[str, Any]:
    if not selected:
        return dict(scores)
    return {name: scores.get(name) for name in selected}


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "item"):
        return value.item()
    try:
        return asdict(value)
    except TypeError:
        pass
    return str(value)
