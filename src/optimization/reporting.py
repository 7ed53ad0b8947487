"""Reporting utilities for search archives."""

from __future__ import annotations

from dataclasses import dataclass
from statistics import mean
from typing import Any, Dict, Iterable, Sequence

import pandas as pd

from .archive import Archive, EvaluationRecord
from .objective import is_missing


@dataclass
class OptimizationReporter:
    """Produce tabular and aggregated views of an archive."""

    archive: Archive

    def to_table(self, measures: Iterable[str] | None = None) -> pd.DataFrame:
        """
        Return the archive as a DataFrame, one row per evaluation.

        Args:
            measures: Optional collection of measure names to keep. Defaults to every measure.
        """
        table = self.archive.data()
        if measures is None:
            return table
        keep = set(measures)
        dropped = [name for name in self.archive.objective.names if name not in keep]
        return table.drop(columns=dropped)

    def summary(self, *, measures: Sequence[str] | None = None, top_n: int = 5) -> Dict[str, Any]:
        """Return aggregated statistics: top-N, averages, min/max per measure and failure count."""
        measures = tuple(measures) if measures is not None else tuple(self.archive.objective.names)

        records = self.archive.records()
        if not records:
            return {"n_evals": 0, "n_failed": 0, "top_n": [], "averages": {}, "distributions": {}, "best": []}

        top_entries = self.archive.top_n(top_n, measure=measures[0])
        top_payload = [self._record_payload(record, measures) for record in top_entries]

        averages: dict[str, float] = {}
        distributions: dict[str, Dict[str, float]] = {}

        for measure in measures:
            values = [
                record.scores.get(measure)
                for record in records
                if not record.failed and not is_missing(record.scores.get(measure))
            ]
            if not values:
                continue
            averages[measure] = mean(values)
            distributions[measure] = {
                "min": min(values),
                "max": max(values),
                "mean": averages[measure],
            }

        return {
            "n_evals": len(records),
            "n_failed": sum(1 for record in records if record.failed),
            "n_batches": self.archive.n_batches,
            "top_n": top_payload,
            "averages": averages,
            "distributions": distributions,
            "best": self.archive.best().front,
        }

    def best_parameters(self) -> dict[str, Any] | None:
        """Return the candidate of the best record, or None for an empty or multi-criterion result."""
        result = self.archive.best()
        if result.is_empty or result.is_multi_criterion:
            return None
        return result.candidate

    @staticmethod
    def _record_payload(record: EvaluationRecord, measures: Sequence[str]) -> Dict[str, Any]:
        return {
            "candidate": dict(record.candidate),
            "scores": {measure: record.scores.get(measure) for measure in measures},
            "batch_nr": record.batch_nr,
            "error": record.error,
            "timestamp": record.timestamp,
        }
