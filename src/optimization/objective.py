"""Performance measures and the objective they form."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class Measure:
    """
    One performance criterion.

    ``scorer`` is only consumed by the scikit-learn collaborators: either the name of a
    scikit-learn scorer or a callable ``scorer(estimator, X, y) -> float``. When it is
    omitted the measure name is used as the scorer name.
    """

    name: str
    minimize: bool = False
    scorer: str | Callable[..., float] | None = None
    worst: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Measure name must not be empty")
        if self.worst is None:
            object.__setattr__(self, "worst", math.inf if self.minimize else -math.inf)

    @classmethod
    def coerce(cls, value: "Measure | str | Mapping[str, Any]") -> "Measure":
        """Accept a measure, a scikit-learn scorer name or a config mapping."""
        if isinstance(value, Measure):
            return value
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, Mapping):
            return cls(
                name=value["name"],
                minimize=bool(value.get("minimize", False)),
                scorer=value.get("scorer"),
                worst=value.get("worst"),
            )
        raise TypeError(f"Cannot build a Measure from {type(value).__name__}")

    def is_better(self, candidate: float, reference: float) -> bool:
        """Return True when ``candidate`` is strictly better than ``reference``."""
        return candidate < reference if self.minimize else candidate > reference

    def improvement(self, candidate: float, reference: float) -> float:
        """Signed gain of ``candidate`` over ``reference``; positive means better."""
        return reference - candidate if self.minimize else candidate - reference


class Objective:
    """Ordered collection of measures; single-criterion when it holds exactly one."""

    def __init__(self, measures: Iterable[Measure | str | Mapping[str, Any]]) -> None:
        self.measures: tuple[Measure, ...] = tuple(Measure.coerce(measure) for measure in measures)
        if not self.measures:
            raise ValueError("An objective requires at least one measure")
        names = [measure.name for measure in self.measures]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate measure names: {names}")

    def __repr__(self) -> str:
        return f"Objective({', '.join(measure.name for measure in self.measures)})"

    @property
    def names(self) -> list[str]:
        return [measure.name for measure in self.measures]

    @property
    def is_multi_criterion(self) -> bool:
        return len(self.measures) > 1

    @property
    def primary(self) -> Measure:
        return self.measures[0]

    def measure(self, name: str | None = None) -> Measure:
        if name is None:
            return self.primary
        for measure in self.measures:
            if measure.name == name:
                return measure
        raise ValueError(f"Unknown measure {name!r}; objective has {', '.join(self.names)}")

    def worst_scores(self) -> dict[str, float]:
        return {measure.name: float(measure.worst) for measure in self.measures}

    def missing_scores(self) -> dict[str, float]:
        return {measure.name: math.nan for measure in self.measures}

    def dominates(self, first: Mapping[str, float], second: Mapping[str, float]) -> bool:
        """
        Pareto dominance: ``first`` is no worse than ``second`` in every measure and
        strictly better in at least one.
        """
        strictly_better = False
        for measure in self.measures:
            a = first[measure.name]
            b = second[measure.name]
            if measure.is_better(b, a):
                return False
            if measure.is_better(a, b):
                strictly_better = True
        return strictly_better


def is_missing(value: Any) -> bool:
    """Return True for None or NaN scores."""
    if value is None:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


def complete(scores: Mapping[str, float], names: Sequence[str]) -> bool:
    """Return True when every named score is present and not NaN."""
    return all(not is_missing(scores.get(name)) for name in names)
