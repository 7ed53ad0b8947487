"""Search strategies. Importing this package registers every strategy in the StrategyRegistry."""

from .base import SearchStrategy, StrategyRegistry, StrategyState
from .design_points import DesignPointsStrategy
from .exhaustive_search import ExhaustiveSearchStrategy
from .grid_search import GridSearchStrategy
from .random_search import RandomSearchStrategy
from .recursive_elimination import RecursiveEliminationStrategy
from .sequential_selection import SequentialSelectionStrategy

__all__ = [
    "SearchStrategy",
    "StrategyRegistry",
    "StrategyState",
    "DesignPointsStrategy",
    "ExhaustiveSearchStrategy",
    "GridSearchStrategy",
    "RandomSearchStrategy",
    "RecursiveEliminationStrategy",
    "SequentialSelectionStrategy",
]
