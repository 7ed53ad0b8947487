import pandas as pd
import pytest

from tuneselect.evaluation import FunctionEvaluator
from tuneselect.optimization import (
    DesignPointsStrategy,
    ExhaustiveSearchStrategy,
    GridSearchStrategy,
    Measure,
    Objective,
    ParameterDefinition,
    ParameterSpace,
    RandomSearchStrategy,
    SearchInstance,
    StrategyRegistry,
)


def test_exhaustive_search_finds_the_minimum(make_instance):
    instance = make_instance({"name": "evals", "n_evals": 5})
    result = ExhaustiveSearchStrategy().optimize(instance)
    assert result.best == {"x": 1, "performance": 1}
    assert len(instance.archive) == 5


def test_exhaustive_search_visits_each_candidate_once():
    space = ParameterSpace.from_definitions(
        [
            ParameterDefinition("a", kind="categorical", values=(1, 2, 3)),
            ParameterDefinition("b", kind="categorical", values=("u", "v")),
        ]
    )
    instance = SearchInstance(
        FunctionEvaluator(lambda candidate: candidate["a"], ["score"]),
        space,
        ["score"],
        {"name": "none"},
    )
    strategy = ExhaustiveSearchStrategy(batch_size=4)
    strategy.optimize(instance)
    visited = [tuple(sorted(record.candidate.items())) for record in instance.archive]
    assert len(visited) == 6
    assert len(set(visited)) == 6
    assert instance.archive.n_batches == 2
    assert strategy.state.stop_reason == "search space exhausted"


@pytest.mark.parametrize("batch_size,n_evals,expected", [(1, 5, 5), (3, 10, 12), (4, 8, 8), (5, 1, 5)])
def test_random_search_overshoots_to_whole_batches(batch_size, n_evals, expected):
    space = ParameterSpace.from_definitions([ParameterDefinition("x", kind="float", lower_bound=0, upper_bound=1)])
    instance = SearchInstance(
        FunctionEvaluator(lambda candidate: candidate["x"], ["score"]),
        space,
        ["score"],
        {"name": "evals", "n_evals": n_evals},
    )
    RandomSearchStrategy(batch_size=batch_size, random_seed=1).optimize(instance)
    assert len(instance.archive) == expected
    assert all(0 <= record.candidate["x"] <= 1 for record in instance.archive)


def test_random_search_is_reproducible(make_instance):
    runs = []
    for _ in range(2):
        instance = make_instance({"name": "evals", "n_evals": 6})
        RandomSearchStrategy(batch_size=2, random_seed=42).optimize(instance)
        runs.append([record.candidate["x"] for record in instance.archive])
    assert runs[0] == runs[1]


def test_random_search_resamples_rejected_draws(int_space, minimize_objective, identity_evaluator):
    def even_only(candidate):
        if candidate["x"] % 2:
            raise ValueError("x must be even")

    int_space.add_validator(even_only)
    instance = SearchInstance(identity_evaluator, int_space, minimize_objective, {"name": "evals", "n_evals": 10})
    RandomSearchStrategy(batch_size=5, random_seed=0).optimize(instance)
    assert {record.candidate["x"] for record in instance.archive} <= {2, 4}


def test_grid_search_uses_steps_and_resolution():
    space = ParameterSpace.from_definitions(
        [
            ParameterDefinition("depth", kind="int", lower_bound=2, upper_bound=6, step=2),
            ParameterDefinition("rate", kind="float", lower_bound=0.0, upper_bound=1.0),
        ]
    )
    instance = SearchInstance(
        FunctionEvaluator(lambda candidate: candidate["depth"] * candidate["rate"], ["score"]),
        space,
        ["score"],
        {"name": "none"},
    )
    strategy = GridSearchStrategy(resolution=3, batch_size=4)
    result = strategy.optimize(instance)
    candidates = [record.candidate for record in instance.archive]
    assert len(candidates) == 9
    assert {candidate["depth"] for candidate in candidates} == {2, 4, 6}
    assert {candidate["rate"] for candidate in candidates} == {0.0, 0.5, 1.0}
    assert result.candidate == {"depth": 6, "rate": 1.0}
    assert instance.archive.n_batches == 3


def test_grid_search_overrides():
    space = ParameterSpace.from_definitions([ParameterDefinition("rate", kind="float", lower_bound=0.0, upper_bound=1.0)])
    instance = SearchInstance(
        FunctionEvaluator(lambda candidate: candidate["rate"], ["score"]),
        space,
        ["score"],
        {"name": "none"},
    )
    GridSearchStrategy(grid={"rate": [0.1, 0.2]}).optimize(instance)
    assert [record.candidate["rate"] for record in instance.archive] == [0.1, 0.2]


def test_terminator_is_checked_between_batches_only(make_instance):
    instance = make_instance({"name": "evals", "n_evals": 2})
    GridSearchStrategy(batch_size=3).optimize(instance)
    assert len(instance.archive) == 3


def test_design_points_replays_rows_and_skips_invalid(make_instance, caplog):
    design = pd.DataFrame({"x": [5, 9, 2, 4]})
    instance = make_instance()
    strategy = DesignPointsStrategy(design, batch_size=2)
    result = strategy.optimize(instance)
    assert [record.candidate["x"] for record in instance.archive] == [5, 2, 4]
    assert result.candidate == {"x": 2}
    assert "Skipping design point 2" in caplog.text


def test_design_points_drops_nan_cells():
    space = ParameterSpace.from_definitions(
        [
            ParameterDefinition("kernel", kind="categorical", values=("linear", "rbf")),
            ParameterDefinition("gamma", lower_bound=0.0, upper_bound=1.0, depends_on={"kernel": ["rbf"]}),
        ]
    )
    design = pd.DataFrame({"kernel": ["linear", "rbf"], "gamma": [float("nan"), 0.25]})
    instance = SearchInstance(
        FunctionEvaluator(lambda candidate: candidate.get("gamma", 0.0), ["score"]),
        space,
        ["score"],
        {"name": "none"},
    )
    DesignPointsStrategy(design).optimize(instance)
    assert [record.candidate for record in instance.archive] == [{"kernel": "linear"}, {"kernel": "rbf", "gamma": 0.25}]


def test_strategy_registry():
    assert {"random_search", "grid_search", "exhaustive_search", "sequential", "rfe", "design_points"} <= set(
        StrategyRegistry.list_strategies()
    )
    strategy = StrategyRegistry.from_config({"name": "random_search", "batch_size": 2, "random_seed": 3})
    assert isinstance(strategy, RandomSearchStrategy)
    assert strategy.batch_size == 2
    with pytest.raises(ValueError):
        StrategyRegistry.get("simulated_annealing")
    with pytest.raises(ValueError):
        RandomSearchStrategy(batch_size=0)


def test_optimize_can_run_twice_on_fresh_instances(make_instance):
    strategy = GridSearchStrategy()
    first = make_instance()
    second = make_instance()
    strategy.optimize(first)
    strategy.optimize(second)
    assert len(first.archive) == len(second.archive) == 5


def test_multi_criterion_search_returns_a_front(int_space):
    objective = Objective([Measure("cost", minimize=True), Measure("gain")])
    evaluator = FunctionEvaluator(lambda candidate: {"cost": candidate["x"], "gain": candidate["x"] ** 2}, objective.measures)
    instance = SearchInstance(evaluator, int_space, objective, {"name": "none"})
    result = ExhaustiveSearchStrategy().optimize(instance)
    assert result.is_multi_criterion
    assert len(result.front) == 5
