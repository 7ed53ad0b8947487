"""File-based search configuration (JSON or YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .instance import FAILURE_POLICIES
from .objective import Objective
from .parameter_space import ParameterSpace, Transformation
from .strategies import StrategyRegistry
from .strategies.base import SearchStrategy
from .terminators import Terminator, TerminatorRegistry


@dataclass
class SearchConfig:
    """
    Declarative description of a search.

    Example (YAML)::

        parameters:
          max_depth: {kind: int, lower_bound: 1, upper_bound: 8}
          criterion: {values: [gini, entropy]}
        strategy: {name: random_search, batch_size: 4, random_seed: 1}
        terminator: {name: evals, n_evals: 20}
        measures: [accuracy]
        failure_policy: missing
    """

    parameters: dict[str, Any] = field(default_factory=dict)
    strategy: dict[str, Any] = field(default_factory=lambda: {"name": "random_search"})
    terminator: dict[str, Any] = field(default_factory=lambda: {"name": "evals", "n_evals": 100})
    measures: list[Any] = field(default_factory=list)
    failure_policy: str = "missing"

    def __post_init__(self) -> None:
        if self.failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"failure_policy must be one of {FAILURE_POLICIES}, got {self.failure_policy!r}")
        if "name" not in self.strategy:
            raise ValueError("strategy section requires a 'name'")
        if "name" not in self.terminator:
            raise ValueError("terminator section requires a 'name'")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "SearchConfig":
        known = {"parameters", "strategy", "terminator", "measures", "failure_policy"}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")
        defaults = cls()
        return cls(
            parameters=dict(payload.get("parameters") or {}),
            strategy=dict(payload.get("strategy") or defaults.strategy),
            terminator=dict(payload.get("terminator") or defaults.terminator),
            measures=list(payload.get("measures") or []),
            failure_policy=payload.get("failure_policy", defaults.failure_policy),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "parameters": self.parameters,
            "strategy": self.strategy,
            "terminator": self.terminator,
            "measures": self.measures,
            "failure_policy": self.failure_policy,
        }

    def build_space(self, *, trafo: Transformation | None = None) -> ParameterSpace:
        return ParameterSpace.from_config({"parameters": self.parameters}, trafo=trafo)

    def build_strategy(self) -> SearchStrategy:
        return StrategyRegistry.from_config(self.strategy)

    def build_terminator(self) -> Terminator:
        return TerminatorRegistry.from_config(self.terminator)

    def build_objective(self) -> Objective:
        return Objective(self.measures)


def load_search_config(path: str | Path) -> SearchConfig:
    """Read a search configuration from a ``.json``, ``.yaml`` or ``.yml`` file."""
    config_path = Path(path)
    text = config_path.read_text(encoding="utf-8")
    if config_path.suffix.lower() == ".json":
        payload = json.loads(text)
    elif config_path.suffix.lower() in (".yaml", ".yml"):
        payload = yaml.safe_load(text)
    else:
        raise ValueError(f"Unsupported configuration format: {config_path.suffix or '<none>'}")
    if not isinstance(payload, Mapping):
        raise ValueError(f"Configuration file {config_path} must contain a mapping at the top level")
    return SearchConfig.from_mapping(payload)
