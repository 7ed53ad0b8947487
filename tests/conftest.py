import pytest
from sklearn.datasets import make_classification, make_regression

from tuneselect.evaluation import FunctionEvaluator, Task
from tuneselect.optimization import (
    Measure,
    Objective,
    ParameterDefinition,
    ParameterSpace,
    SearchInstance,
)


@pytest.fixture
def int_space():
    """Single integer dimension x in [1, 5]."""
    return ParameterSpace.from_definitions([ParameterDefinition("x", kind="int", lower_bound=1, upper_bound=5)])


@pytest.fixture
def minimize_objective():
    return Objective([Measure("performance", minimize=True)])


@pytest.fixture
def identity_evaluator():
    """Performance equals the value of x."""
    return FunctionEvaluator(lambda candidate: candidate["x"], [Measure("performance", minimize=True)])


@pytest.fixture
def make_instance(int_space, minimize_objective, identity_evaluator):
    def _make(terminator=None, **kwargs):
        return SearchInstance(
            kwargs.pop("evaluator", identity_evaluator),
            kwargs.pop("search_space", int_space),
            kwargs.pop("objective", minimize_objective),
            terminator if terminator is not None else {"name": "none"},
            **kwargs,
        )

    return _make


@pytest.fixture
def classification_task():
    X, y = make_classification(
        n_samples=120,
        n_features=5,
        n_informative=3,
        n_redundant=0,
        random_state=0,
    )
    return Task.from_arrays(X, y, name="synthetic")


@pytest.fixture
def regression_task():
    X, y = make_regression(n_samples=80, n_features=3, noise=0.1, random_state=0)
    return Task.from_arrays(X, y, feature_names=["a", "b", "c"], name="linear")
