import math

import numpy as np
import pytest
from sklearn.base import clone
from sklearn.linear_model import LogisticRegression
from sklearn.tree import DecisionTreeClassifier

from tuneselect.autotune import AutoFeatureSelector, AutoTuner
from tuneselect.evaluation import nested_resample
from tuneselect.optimization import ParameterDefinition, ParameterSpace

TREE_SPACE = {
    "parameters": {
        "max_depth": {"lower_bound": 1, "upper_bound": 6},
        "criterion": {"values": ["gini", "entropy"]},
    }
}


def _tuner(**overrides):
    params = dict(
        estimator=DecisionTreeClassifier(random_state=0),
        search_space=TREE_SPACE,
        strategy="random_search",
        strategy_params={"batch_size": 3},
        terminator={"name": "evals", "n_evals": 6},
        resampling=3,
        random_state=0,
    )
    params.update(overrides)
    return AutoTuner(**params)


def test_auto_tuner_trains_final_model_with_best_params(classification_task):
    tuner = _tuner().train(classification_task)
    assert len(tuner.archive_) == 6
    assert tuner.archive_.n_batches == 2
    assert set(tuner.best_params_) == {"max_depth", "criterion"}
    assert tuner.model_.get_params()["max_depth"] == tuner.best_params_["max_depth"]
    assert tuner.best_params_ == tuner.result_.candidate
    assert list(tuner.classes_) == [0, 1]


def test_auto_tuner_predicts_on_tasks_and_arrays(classification_task):
    tuner = _tuner().fit(classification_task.X.to_numpy(), classification_task.y.to_numpy())
    assert tuner.predict(classification_task.X).shape == (classification_task.n_rows,)
    assert tuner.predict(classification_task, rows=[0, 1, 2]).shape == (3,)
    proba = tuner.predict_proba(classification_task.X.to_numpy())
    assert proba.shape == (classification_task.n_rows, 2)
    assert np.allclose(proba.sum(axis=1), 1.0)


def test_every_training_run_starts_a_fresh_search(classification_task):
    tuner = _tuner()
    tuner.train(classification_task)
    first_archive = tuner.archive_
    tuner.train(classification_task)
    assert tuner.archive_ is not first_archive
    assert len(tuner.archive_) == 6


def test_auto_tuner_accepts_parameter_space_and_grid(classification_task):
    space = ParameterSpace.from_definitions([ParameterDefinition("max_depth", kind="int", lower_bound=1, upper_bound=3)])
    tuner = _tuner(search_space=space, strategy="grid_search", strategy_params=None, terminator={"name": "none"})
    tuner.train(classification_task)
    assert sorted(record.candidate["max_depth"] for record in tuner.archive_) == [1, 2, 3]


def test_auto_tuner_is_clonable():
    tuner = _tuner()
    cloned = clone(tuner)
    assert cloned.get_params(deep=False)["search_space"] == TREE_SPACE
    assert cloned.get_params(deep=False)["terminator"] == {"name": "evals", "n_evals": 6}


def test_auto_tuner_rejects_multi_criterion_objectives(classification_task):
    with pytest.raises(ValueError):
        _tuner(measures=["accuracy", "f1"]).train(classification_task)


@pytest.mark.parametrize("failure_policy", ["missing", "worst"])
def test_auto_tuner_raises_when_every_candidate_fails(classification_task, failure_policy):
    tuner = _tuner(
        search_space={"parameters": {"max_depth": {"values": [-1, -2]}}},
        strategy="grid_search",
        strategy_params=None,
        terminator={"name": "none"},
        failure_policy=failure_policy,
    )
    with pytest.raises(RuntimeError, match="every candidate failed"):
        tuner.train(classification_task)


def test_predict_before_training_fails():
    with pytest.raises(RuntimeError):
        _tuner().predict(np.zeros((2, 5)))


def test_auto_feature_selector_sequential(classification_task):
    selector = AutoFeatureSelector(
        LogisticRegression(max_iter=500),
        terminator={"name": "none"},
        resampling=3,
        random_state=0,
    ).train(classification_task)
    assert 1 <= len(selector.selected_features_) <= 5
    assert set(selector.selected_features_) <= set(classification_task.feature_names)
    assert list(selector.transform(classification_task).columns) == selector.selected_features_
    assert selector.get_support().sum() == len(selector.selected_features_)
    assert selector.predict(classification_task.X).shape == (classification_task.n_rows,)


def test_auto_feature_selector_rfe_uses_importances(classification_task):
    selector = AutoFeatureSelector(
        DecisionTreeClassifier(random_state=0),
        strategy="rfe",
        strategy_params={"n_features": 2},
        terminator={"name": "none"},
        resampling=2,
        random_state=0,
    ).train(classification_task)
    first = selector.archive_.records()[0]
    assert all(first.candidate.values())
    assert "importance" in first.extras
    assert len(selector.archive_) == 2


def test_nested_resampling_runs_independent_inner_searches(classification_task):
    tuner = _tuner(resampling=2, terminator={"name": "evals", "n_evals": 4}, strategy_params=None)
    result = nested_resample(tuner, classification_task, outer_resampling=2, random_state=7)
    archives = result.inner_archives()
    assert len(archives) == 2
    assert archives[0] is not archives[1]
    assert len(archives[0]) == len(archives[1]) == 4
    hashes = [{record.uhash for record in archive} for archive in archives]
    assert hashes[0].isdisjoint(hashes[1])
    assert [fold.learner.random_state for fold in result.folds] == [7, 8]
    assert tuner.get_params()["random_state"] == 0
    assert not hasattr(tuner, "archive_")

    table = result.score_table()
    assert list(table["n_inner_evals"]) == [4, 4]
    assert 0.0 <= result.aggregate()["accuracy"] <= 1.0


def test_nested_resampling_train_rows_are_disjoint_from_test_rows(classification_task):
    result = nested_resample(DecisionTreeClassifier(random_state=0), classification_task, outer_resampling=3)
    for fold in result.folds:
        assert set(fold.train_rows).isdisjoint(fold.test_rows)
        assert fold.archive is None
    assert list(result.score_table()["n_inner_evals"]) == [0, 0, 0]


def test_nested_resampling_records_failed_folds(classification_task):
    tuner = _tuner(
        search_space={"parameters": {"max_depth": {"values": [-1]}}},
        strategy="grid_search",
        strategy_params=None,
        terminator={"name": "none"},
    )
    result = nested_resample(tuner, classification_task, outer_resampling=2)
    assert all(fold.failed for fold in result.folds)
    assert math.isnan(result.aggregate()["accuracy"])
