"""Evaluation collaborators built on scikit-learn, plus nested resampling."""

from .benchmark import (
    FeatureSubsetBenchmark,
    FunctionEvaluator,
    HyperparameterBenchmark,
    ResampleResult,
    default_measures,
)
from .nested import FoldResult, NestedResampleResult, nested_resample
from .task import Task, infer_task_type, instantiate_splits, make_resampling

__all__ = [
    "FeatureSubsetBenchmark",
    "FoldResult",
    "FunctionEvaluator",
    "HyperparameterBenchmark",
    "NestedResampleResult",
    "ResampleResult",
    "Task",
    "default_measures",
    "infer_task_type",
    "instantiate_splits",
    "make_resampling",
    "nested_resample",
]
