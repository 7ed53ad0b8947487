"""Orchestrator responsible for running a search end-to-end and exporting its artifacts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

import json
import time

from .archive import SearchResult
from .instance import BatchCallback, SearchInstance
from .reporting import OptimizationReporter
from .strategies.base import SearchStrategy


class _UTCFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created, UTC).isoformat()


@dataclass
class OptimizationExecutor:
    """Drive one search: run the strategy on the instance, then store and report the archive."""

    instance: SearchInstance
    strategy: SearchStrategy
    output_root: Path = Path("output/optimization")
    callbacks: Iterable[BatchCallback] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self.result: SearchResult | None = None
        self.duration: float | None = None

    def run(self, *, run_id: str | None = None, output_root: str | Path | None = None) -> Path:
        """Execute the search and write ``run.log``, ``results.csv``, ``results.json`` and ``summary.json``."""
        run_name = run_id or datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        root = Path(output_root) if output_root else Path(self.output_root)
        run_dir = root / run_name
        run_dir.mkdir(parents=True, exist_ok=True)

        log = self.instance.logger
        handler = logging.FileHandler(run_dir / "run.log", encoding="utf-8")
        handler.setFormatter(_UTCFormatter("%(asctime)s %(message)s"))
        previous_level = log.level
        if log.getEffectiveLevel() > logging.INFO:
            log.setLevel(logging.INFO)
        log.addHandler(handler)

        original_callbacks = self.instance.callbacks
        self.instance.callbacks = (*original_callbacks, *self.callbacks)
        start = time.perf_counter()
        try:
            log.info(f"Starting search run '{run_name}'")
            self.result = self.strategy.optimize(self.instance)
            self.duration = time.perf_counter() - start
            log.info(f"Completed run '{run_name}' in {self.duration:.2f} seconds")
        finally:
            self.instance.callbacks = original_callbacks
            log.removeHandler(handler)
            log.setLevel(previous_level)
            handler.close()

        self._export_results(run_dir)
        return run_dir

    def _export_results(self, run_dir: Path) -> None:
        archive = self.instance.archive
        archive.export_csv(run_dir / "results.csv")
        archive.export_json(run_dir / "results.json")

        reporter = OptimizationReporter(archive)
        summary = reporter.summary()
        summary["strategy"] = self.strategy.name
        summary["stop_reason"] = self.strategy.state.stop_reason
        summary["duration_seconds"] = self.duration
        (run_dir / "summary.json").write_text(json.dumps(summary, indent=2, default=_json_fallback), encoding="utf-8")


def _json_fallback(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "item"):
        return value.item()
    try:
        return list(value)
    except TypeError:
        pass
    return str(value)
