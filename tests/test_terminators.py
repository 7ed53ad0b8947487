import math
from datetime import datetime, timedelta, timezone

import pytest

from tuneselect.optimization import (
    Archive,
    ClockTimeTerminator,
    ComboTerminator,
    EvalsTerminator,
    EvaluationRecord,
    Measure,
    ModelTimeTerminator,
    NoneTerminator,
    Objective,
    PerformanceTerminator,
    RunTimeTerminator,
    StagnationBatchTerminator,
    StagnationTerminator,
    TerminatorRegistry,
)

ALL_TERMINATORS = [
    EvalsTerminator(0),
    EvalsTerminator(3),
    RunTimeTerminator(0),
    ClockTimeTerminator(datetime(2000, 1, 1, tzinfo=timezone.utc)),
    ModelTimeTerminator(0),
    PerformanceTerminator(0.0),
    StagnationTerminator(iters=1),
    StagnationBatchTerminator(n=1),
    NoneTerminator(),
    ComboTerminator([EvalsTerminator(1), RunTimeTerminator(0)]),
]


def _archive(minimize=False):
    return Archive(Objective([Measure("score", minimize=minimize)]))


def _fill(archive, values, *, batch_size=1, runtime=0.0):
    """Append ``values`` as scores, ``batch_size`` records per batch."""
    for start in range(0, len(values), batch_size):
        batch_nr = archive.n_batches + 1
        archive.append(
            [
                EvaluationRecord(
                    candidate={"i": start + offset},
                    scores={"score": value},
                    batch_nr=batch_nr,
                    runtime_learners=runtime,
                )
                for offset, value in enumerate(values[start : start + batch_size])
            ]
        )


@pytest.mark.parametrize("terminator", ALL_TERMINATORS, ids=lambda terminator: terminator.name)
def test_empty_archive_never_stops(terminator):
    assert terminator.should_stop(_archive()) is False


def test_evals_fires_exactly_at_budget_and_stays_fired():
    archive = _archive()
    terminator = EvalsTerminator(3)
    decisions = []
    for value in [0.1, 0.2, 0.3, 0.4]:
        _fill(archive, [value])
        decisions.append(terminator.should_stop(archive))
    assert decisions == [False, False, True, True]


def test_performance_level_respects_direction():
    maximize = _archive()
    _fill(maximize, [0.5, 0.8])
    assert PerformanceTerminator(0.8).should_stop(maximize)
    assert not PerformanceTerminator(0.9).should_stop(maximize)

    minimize = _archive(minimize=True)
    _fill(minimize, [0.5, 0.3])
    assert PerformanceTerminator(0.3).should_stop(minimize)
    assert not PerformanceTerminator(0.1).should_stop(minimize)


def test_stagnation_needs_history_and_improvement():
    archive = _archive()
    terminator = StagnationTerminator(iters=2, threshold=0.05)
    _fill(archive, [0.5, 0.52])
    assert not terminator.should_stop(archive)
    _fill(archive, [0.53])
    assert terminator.should_stop(archive)

    improving = _archive()
    _fill(improving, [0.5, 0.51, 0.7])
    assert not terminator.should_stop(improving)


def test_stagnation_batch_compares_whole_batches():
    archive = _archive(minimize=True)
    terminator = StagnationBatchTerminator(n=1)
    _fill(archive, [0.5, 0.4], batch_size=2)
    assert not terminator.should_stop(archive)
    _fill(archive, [0.3, 0.6], batch_size=2)
    assert not terminator.should_stop(archive)
    _fill(archive, [0.35, 0.9], batch_size=2)
    assert terminator.should_stop(archive)


def test_model_time_sums_learner_runtime():
    archive = _archive()
    terminator = ModelTimeTerminator(1.0)
    _fill(archive, [0.1, 0.2], runtime=0.4)
    assert not terminator.should_stop(archive)
    _fill(archive, [0.3], runtime=0.4)
    assert terminator.should_stop(archive)


def test_run_time_fires_once_budget_elapsed():
    archive = _archive()
    _fill(archive, [0.1, 0.2])
    assert RunTimeTerminator(0).should_stop(archive)
    assert not RunTimeTerminator(3600).should_stop(archive)


def test_failed_records_do_not_count_as_progress():
    archive = _archive()
    _fill(archive, [0.5])
    archive.append(
        [EvaluationRecord(candidate={"i": 1}, scores={"score": math.inf}, batch_nr=2, error="boom")]
    )
    assert not PerformanceTerminator(0.9).should_stop(archive)
    assert StagnationTerminator(iters=1).should_stop(archive)


def test_clock_time_accepts_iso_strings():
    archive = _archive()
    _fill(archive, [0.1])
    past = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
    future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    assert ClockTimeTerminator(past).should_stop(archive)
    assert not ClockTimeTerminator(future).should_stop(archive)


def test_combo_any_and_all():
    archive = _archive()
    _fill(archive, [0.1, 0.2])
    fired, idle = EvalsTerminator(2), EvalsTerminator(10)
    assert ComboTerminator([fired, idle]).should_stop(archive)
    combo_all = ComboTerminator([fired, idle], any=False)
    assert not combo_all.should_stop(archive)
    combo = ComboTerminator([fired, idle])
    combo.should_stop(archive)
    assert combo.reason == fired.reason


@pytest.mark.parametrize(
    "config",
    [
        {"name": "evals", "n_evals": -1},
        {"name": "evals", "n_evals": 2.5},
        {"name": "run_time", "seconds": -3},
        {"name": "stagnation", "iters": 0},
        {"name": "stagnation_batch", "n": 1, "threshold": -0.1},
        {"name": "combo", "terminators": []},
        {"name": "unknown"},
        {"n_evals": 3},
    ],
)
def test_misconfiguration_fails_fast(config):
    with pytest.raises(ValueError):
        TerminatorRegistry.from_config(config)


def test_registry_builds_nested_combo():
    terminator = TerminatorRegistry.from_config(
        {"name": "combo", "any": False, "terminators": [{"name": "evals", "n_evals": 5}, {"name": "none"}]}
    )
    assert isinstance(terminator, ComboTerminator)
    assert [member.name for member in terminator.terminators] == ["evals", "none"]
    assert {"evals", "run_time", "clock_time", "model_time", "perf_reached", "stagnation", "stagnation_batch", "none", "combo"} <= set(
        TerminatorRegistry.list_terminators()
    )


def test_single_criterion_terminators_reject_multi_criterion_objectives():
    objective = Objective([Measure("a"), Measure("b", minimize=True)])
    with pytest.raises(ValueError):
        PerformanceTerminator(0.5).check_objective(objective)
    PerformanceTerminator(0.5, measure="b").check_objective(objective)
    EvalsTerminator(3).check_objective(objective)
