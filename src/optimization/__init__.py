"""Search engine core: spaces, archive, terminators, search instance and strategies."""

from .archive import Archive, EvaluationRecord, SearchResult
from .config import SearchConfig, load_search_config
from .errors import EvaluationError, InvalidCandidateError
from .executor import OptimizationExecutor
from .instance import CandidateEvaluator, EvaluationOutcome, SearchInstance
from .objective import Measure, Objective
from .parameter_space import FeatureSpace, ParameterDefinition, ParameterSpace
from .reporting import OptimizationReporter
from .strategies import (
    DesignPointsStrategy,
    ExhaustiveSearchStrategy,
    GridSearchStrategy,
    RandomSearchStrategy,
    RecursiveEliminationStrategy,
    SearchStrategy,
    SequentialSelectionStrategy,
    StrategyRegistry,
)
from .terminators import (
    ClockTimeTerminator,
    ComboTerminator,
    EvalsTerminator,
    ModelTimeTerminator,
    NoneTerminator,
    PerformanceTerminator,
    RunTimeTerminator,
    StagnationBatchTerminator,
    StagnationTerminator,
    Terminator,
    TerminatorRegistry,
)

__all__ = [
    "Archive",
    "CandidateEvaluator",
    "ClockTimeTerminator",
    "ComboTerminator",
    "DesignPointsStrategy",
    "EvalsTerminator",
    "EvaluationError",
    "EvaluationOutcome",
    "EvaluationRecord",
    "ExhaustiveSearchStrategy",
    "FeatureSpace",
    "GridSearchStrategy",
    "InvalidCandidateError",
    "Measure",
    "ModelTimeTerminator",
    "NoneTerminator",
    "Objective",
    "OptimizationExecutor",
    "OptimizationReporter",
    "ParameterDefinition",
    "ParameterSpace",
    "PerformanceTerminator",
    "RandomSearchStrategy",
    "RecursiveEliminationStrategy",
    "RunTimeTerminator",
    "SearchConfig",
    "SearchInstance",
    "SearchResult",
    "SearchStrategy",
    "SequentialSelectionStrategy",
    "StagnationBatchTerminator",
    "StagnationTerminator",
    "StrategyRegistry",
    "Terminator",
    "TerminatorRegistry",
    "load_search_config",
]
