import logging
import math

import pytest

from tuneselect.evaluation import FunctionEvaluator
from tuneselect.optimization import (
    EvaluationError,
    EvaluationOutcome,
    InvalidCandidateError,
    Measure,
    Objective,
    SearchInstance,
)


def _fragile(candidate):
    if candidate["x"] == 3:
        raise RuntimeError("fit diverged")
    return candidate["x"]


def test_failed_candidates_are_recorded_as_missing(make_instance, caplog):
    instance = make_instance(evaluator=FunctionEvaluator(_fragile, [Measure("performance", minimize=True)]))
    with caplog.at_level(logging.WARNING):
        records = instance.evaluate_batch([{"x": 2}, {"x": 3}, {"x": 4}])
    assert [record.failed for record in records] == [False, True, False]
    assert math.isnan(records[1].scores["performance"])
    assert "fit diverged" in records[1].error
    assert "fit diverged" in caplog.text
    assert instance.result.candidate == {"x": 2}


def test_worst_policy_substitutes_worst_score(make_instance):
    instance = make_instance(
        evaluator=FunctionEvaluator(_fragile, [Measure("performance", minimize=True)]),
        failure_policy="worst",
    )
    records = instance.evaluate_batch([{"x": 3}])
    assert records[0].scores == {"performance": math.inf}
    assert records[0].failed


def test_worst_policy_never_ranks_a_failure_as_best(make_instance):
    objective = Objective([Measure("performance", minimize=True, worst=0.0)])
    instance = make_instance(
        evaluator=FunctionEvaluator(_fragile, [Measure("performance", minimize=True)]),
        objective=objective,
        failure_policy="worst",
    )
    instance.evaluate_batch([{"x": 3}])
    assert instance.result.is_empty
    instance.evaluate_batch([{"x": 4}, {"x": 2}])
    assert instance.result.candidate == {"x": 2}
    assert instance.archive.best_score() == 2


def test_unknown_failure_policy_is_rejected(make_instance):
    with pytest.raises(ValueError):
        make_instance(failure_policy="ignore")


def test_invalid_candidate_is_never_evaluated(make_instance):
    calls = []

    def tracked(candidate):
        calls.append(candidate)
        return candidate["x"]

    instance = make_instance(evaluator=FunctionEvaluator(tracked, [Measure("performance", minimize=True)]))
    with pytest.raises(InvalidCandidateError):
        instance.evaluate_batch([{"x": 1}, {"x": 9}])
    assert calls == []
    assert len(instance.archive) == 0


def test_batches_are_numbered_in_order(make_instance):
    instance = make_instance()
    instance.evaluate_batch([{"x": 1}, {"x": 2}])
    instance.evaluate_batch([{"x": 3}])
    assert [record.batch_nr for record in instance.archive] == [1, 1, 2]
    assert instance.archive.n_batches == 2


def test_evaluator_must_return_one_outcome_per_candidate(int_space, minimize_objective):
    class Truncating:
        def evaluate(self, candidates):
            return [EvaluationOutcome(scores={"performance": 1.0})]

    instance = SearchInstance(Truncating(), int_space, minimize_objective, {"name": "none"})
    with pytest.raises(EvaluationError):
        instance.evaluate_batch([{"x": 1}, {"x": 2}])
    assert len(instance.archive) == 0


def test_missing_score_counts_as_failure(int_space):
    objective = Objective([Measure("a"), Measure("b")])

    class Partial:
        def evaluate(self, candidates):
            return [EvaluationOutcome(scores={"a": 1.0}) for _ in candidates]

    instance = SearchInstance(Partial(), int_space, objective, {"name": "none"})
    (record,) = instance.evaluate_batch([{"x": 1}])
    assert record.failed
    assert "b" in record.error


def test_terminator_misconfiguration_fails_at_construction(make_instance):
    with pytest.raises(ValueError):
        make_instance({"name": "evals", "n_evals": -5})


def test_transformed_values_reach_the_evaluator(int_space, minimize_objective):
    seen = []
    int_space.trafo = lambda candidate: {"x": candidate["x"] * 10}

    def record_input(candidate):
        seen.append(candidate["x"])
        return candidate["x"]

    instance = SearchInstance(
        FunctionEvaluator(record_input, [Measure("performance", minimize=True)]),
        int_space,
        minimize_objective,
        {"name": "none"},
    )
    (record,) = instance.evaluate_batch([{"x": 2}])
    assert seen == [20]
    assert record.candidate == {"x": 2}
    assert record.transformed == {"x": 20}


def test_batch_callbacks_run_after_archiving(make_instance):
    observed = []
    instance = make_instance(callbacks=[lambda inst, records: observed.append((len(inst.archive), len(records)))])
    instance.evaluate_batch([{"x": 1}, {"x": 2}])
    assert observed == [(2, 2)]


def test_batch_log_line(make_instance, caplog):
    instance = make_instance()
    with caplog.at_level(logging.INFO, logger="tuneselect.optimization.instance"):
        instance.evaluate_batch([{"x": 4}, {"x": 2}])
    assert "[batch 1] evaluated 2 candidate(s), 0 failed" in caplog.text
    assert "overall best performance=2" in caplog.text
