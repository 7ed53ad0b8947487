"""Black-box hyperparameter tuning and feature selection."""

from .autotune import AutoFeatureSelector, AutoTuner
from .evaluation import FeatureSubsetBenchmark, FunctionEvaluator, HyperparameterBenchmark, Task, nested_resample
from .optimization import (
    Archive,
    FeatureSpace,
    Measure,
    Objective,
    ParameterDefinition,
    ParameterSpace,
    SearchInstance,
    StrategyRegistry,
    TerminatorRegistry,
)

__version__ = "0.1.0"

__all__ = [
    "Archive",
    "AutoFeatureSelector",
    "AutoTuner",
    "FeatureSpace",
    "FeatureSubsetBenchmark",
    "FunctionEvaluator",
    "HyperparameterBenchmark",
    "Measure",
    "Objective",
    "ParameterDefinition",
    "ParameterSpace",
    "SearchInstance",
    "StrategyRegistry",
    "Task",
    "TerminatorRegistry",
    "nested_resample",
]
