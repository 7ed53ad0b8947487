"""Base classes and interfaces for search strategies."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Type

from ..archive import SearchResult
from ..errors import InvalidCandidateError

if TYPE_CHECKING:  # pragma: no cover
    from ..instance import SearchInstance

EXHAUSTED = "search space exhausted"


@dataclass
class StrategyState:
    """Mutable state shared between strategy iterations."""

    iterations: int = 0
    proposed: int = 0
    stop_reason: str | None = None


class SearchStrategy(ABC):
    """
    Abstract base class for search strategies.

    Subclasses implement :meth:`propose`; the shared :meth:`optimize` loop evaluates
    one batch at a time and consults the terminator only between batches.
    """

    name: str = "base"

    def __init__(self, *, batch_size: int = 1, random_seed: int | None = None) -> None:
        if isinstance(batch_size, bool) or int(batch_size) != batch_size or batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")
        self.batch_size = int(batch_size)
        self.random_seed = random_seed
        self.state = StrategyState()
        self._rng = random.Random(random_seed)

    @abstractmethod
    def propose(self, instance: "SearchInstance") -> List[dict[str, Any]]:
        """
        Produce the next batch of valid candidates.

        An empty list ends the search; the strategy records why in ``state.stop_reason``.
        """

    def reset(self) -> None:
        """Reset internal state to its initial values."""
        self.state = StrategyState()
        self._rng = random.Random(self.random_seed)

    def optimize(self, instance: "SearchInstance") -> SearchResult:
        """Drive the search on ``instance`` until the terminator fires or candidates run out."""
        self.reset()
        log = instance.logger
        log.info(f"Starting {self.name} on {instance!r}")
        while True:
            if instance.is_terminated:
                reason = f"terminator: {instance.terminator.reason}"
                break
            batch = self.propose(instance)
            if not batch:
                reason = self.state.stop_reason or EXHAUSTED
                break
            self.state.iterations += 1
            self.state.proposed += len(batch)
            instance.evaluate_batch(batch)

        result = instance.result
        log.info(
            f"Finished {self.name} ({reason}) after {instance.n_evals} evaluations "
            f"in {instance.archive.n_batches} batches"
        )
        self.state.stop_reason = reason
        return result

    def _finish(self, reason: str = EXHAUSTED) -> List[dict[str, Any]]:
        self.state.stop_reason = reason
        return []

    @staticmethod
    def _valid(instance: "SearchInstance", candidate: Mapping[str, Any]) -> dict[str, Any] | None:
        try:
            return instance.search_space.validate(candidate)
        except InvalidCandidateError:
            return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(batch_size={self.batch_size}, random_seed={self.random_seed})"


class StrategyRegistry:
    """Name-keyed registry of search strategy classes."""

    _strategies: Dict[str, Type[SearchStrategy]] = {}

    @classmethod
    def register(cls, strategy_class: Type[SearchStrategy]) -> Type[SearchStrategy]:
        """Class decorator registering a strategy under its ``name`` attribute."""
        cls._strategies[strategy_class.name] = strategy_class
        return strategy_class

    @classmethod
    def get(cls, name: str) -> Type[SearchStrategy]:
        if name not in cls._strategies:
            available = ", ".join(cls._strategies.keys()) or "none"
            raise ValueError(f"Strategy '{name}' is not registered. Available strategies: {available}")
        return cls._strategies[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> SearchStrategy:
        return cls.get(name)(**config)

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | SearchStrategy) -> SearchStrategy:
        """Build a strategy from ``{"name": ..., **params}``; instances pass through."""
        if isinstance(config, SearchStrategy):
            return config
        params = dict(config)
        try:
            name = params.pop("name")
        except KeyError:
            raise ValueError("Strategy configuration requires a 'name' entry") from None
        return cls.create(name, **params)

    @classmethod
    def list_strategies(cls) -> List[str]:
        return list(cls._strategies.keys())
