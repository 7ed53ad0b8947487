"""Parameter space definitions and helpers for tuning and feature-selection searches."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from decimal import Decimal
from itertools import product
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, MutableMapping, Sequence

import numpy as np

from .errors import InvalidCandidateError

Validator = Callable[[dict[str, Any]], None]
Transformation = Callable[[dict[str, Any]], dict[str, Any]]
_DECIMAL_TOLERANCE = Decimal("1e-12")
_KINDS = ("float", "int", "categorical", "bool")


@dataclass(frozen=True)
class ParameterDefinition:
    """Immutable description of a single search dimension."""

    name: str
    kind: str = "float"
    description: str = ""
    values: Sequence[Any] | None = None
    lower_bound: float | None = None
    upper_bound: float | None = None
    step: float | None = None
    is_required: bool = True
    depends_on: Mapping[str, Sequence[Any]] | None = None

    def __post_init__(self) -> None:
        if self.kind not in _KINDS:
            raise ValueError(f"Parameter {self.name} has unknown kind {self.kind!r}; expected one of {_KINDS}")
        if self.kind == "bool" and self.values is None:
            object.__setattr__(self, "values", (True, False))
        if self.values is not None:
            object.__setattr__(self, "values", tuple(self.values))
        if self.values is None and self.kind in ("categorical", "bool"):
            raise ValueError(f"Parameter {self.name} of kind {self.kind} requires explicit values")
        if self.lower_bound is not None and self.upper_bound is not None and self.upper_bound < self.lower_bound:
            raise ValueError(f"Parameter {self.name} has upper_bound < lower_bound")
        if self.depends_on is not None:
            object.__setattr__(
                self,
                "depends_on",
                {parent: _as_tuple(allowed) for parent, allowed in self.depends_on.items()},
            )

    def is_discrete(self) -> bool:
        """Return True when discrete values are provided."""
        return self.values is not None

    def generate_candidates(self, resolution: int | None = None) -> tuple[Any, ...]:
        """
        Produce a tuple of candidate values suitable for grid or exhaustive search.

        Args:
            resolution: Number of evenly spaced points used for a numeric range without a step.

        Raises:
            ValueError: if the dimension cannot be discretised.
        """
        if self.values is not None:
            candidates = tuple(self.values)
            if not candidates:
                raise ValueError(f"Parameter {self.name} must define at least one candidate value")
            return candidates

        if self.lower_bound is None or self.upper_bound is None:
            raise ValueError(f"Parameter {self.name} must define either discrete values or a bounded range")

        if resolution is not None:
            return self._resolution_candidates(resolution)

        step = self.step
        if step is None:
            if self.kind != "int":
                raise ValueError(
                    f"Parameter {self.name} is continuous; provide a step or a resolution to discretise it"
                )
            step = 1

        step_decimal = Decimal(str(step))
        if step_decimal <= 0:
            raise ValueError(f"Parameter {self.name} requires a positive step size")

        lower = Decimal(str(self.lower_bound))
        upper = Decimal(str(self.upper_bound))

        values: list[Decimal] = []
        current = lower
        # Guard against pathological configurations that could loop forever.
        max_iterations = 1_000_000
        while current <= upper + _DECIMAL_TOLERANCE:
            values.append(current)
            current += step_decimal
            if len(values) > max_iterations:
                raise ValueError(
                    f"Parameter {self.name} produced more than {max_iterations} grid values. "
                    "Check range and step configuration."
                )

        if not values:
            raise ValueError(f"Parameter {self.name} did not yield any grid values")

        return tuple(self._coerce(_coerce_decimal(value)) for value in values)

    def sample(self, rng: random.Random) -> Any:
        """Draw one value uniformly from the levels or the bounded range."""
        if self.values is not None:
            return rng.choice(self.values)
        if self.lower_bound is None or self.upper_bound is None:
            raise ValueError(f"Parameter {self.name} needs both bounds to be sampled")
        if self.step is not None:
            return rng.choice(self.generate_candidates())
        if self.kind == "int":
            return rng.randint(int(self.lower_bound), int(self.upper_bound))
        return rng.uniform(float(self.lower_bound), float(self.upper_bound))

    def _resolution_candidates(self, resolution: int) -> tuple[Any, ...]:
        if resolution < 1:
            raise ValueError(f"Resolution for parameter {self.name} must be at least 1")
        assert self.lower_bound is not None and self.upper_bound is not None
        if resolution == 1:
            points = np.asarray([self.lower_bound], dtype=float)
        else:
            points = np.linspace(float(self.lower_bound), float(self.upper_bound), int(resolution))
        if self.kind == "int":
            ordered: dict[int, None] = {}
            for point in points:
                ordered.setdefault(int(round(float(point))), None)
            return tuple(ordered)
        return tuple(float(point) for point in points)

    def _coerce(self, value: Any) -> Any:
        if self.kind == "int":
            return int(value)
        if self.kind == "float":
            return float(value)
        return value


@dataclass
class ParameterSpace:
    """Container for parameter definitions used by search strategies."""

    parameters: MutableMapping[str, ParameterDefinition] = field(default_factory=dict)
    validators: list[Validator] = field(default_factory=list)
    trafo: Transformation | None = None

    @classmethod
    def from_definitions(
        cls,
        definitions: Sequence[ParameterDefinition],
        *,
        trafo: Transformation | None = None,
    ) -> "ParameterSpace":
        """Construct a parameter space from an ordered sequence of definitions."""
        parameters: Dict[str, ParameterDefinition] = {}
        for definition in definitions:
            if definition.name in parameters:
                raise ValueError(f"Duplicate parameter definition: {definition.name}")
            parameters[definition.name] = definition
        for definition in parameters.values():
            for parent in (definition.depends_on or {}):
                if parent not in parameters:
                    raise ValueError(f"Parameter {definition.name} depends on unknown parameter {parent}")
        return cls(parameters=parameters, trafo=trafo)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        validators: Iterable[Validator] | None = None,
        trafo: Transformation | None = None,
    ) -> "ParameterSpace":
        """Load a parameter space definition from a YAML/JSON style mapping."""
        parameters_config = config.get("parameters", {}) if config else {}
        definitions: list[ParameterDefinition] = []
        for name, raw_definition in parameters_config.items():
            definitions.append(
                ParameterDefinition(
                    name=name,
                    kind=raw_definition.get("kind", _infer_kind(raw_definition)),
                    description=raw_definition.get("description", ""),
                    values=_as_tuple(raw_definition.get("values")),
                    lower_bound=raw_definition.get("lower_bound"),
                    upper_bound=raw_definition.get("upper_bound"),
                    step=raw_definition.get("step"),
                    is_required=raw_definition.get("required", True),
                    depends_on=raw_definition.get("depends_on"),
                )
            )
        space = cls.from_definitions(definitions, trafo=trafo)
        if validators:
            space.validators.extend(list(validators))
        return space

    def to_config(self) -> dict[str, Any]:
        """Serialize the parameter space back into a configuration mapping."""
        config: dict[str, Any] = {"parameters": {}}
        for name, definition in self.parameters.items():
            item: dict[str, Any] = {"kind": definition.kind}
            if definition.description:
                item["description"] = definition.description
            if definition.values is not None and definition.kind != "bool":
                item["values"] = list(definition.values)
            if definition.lower_bound is not None:
                item["lower_bound"] = definition.lower_bound
            if definition.upper_bound is not None:
                item["upper_bound"] = definition.upper_bound
            if definition.step is not None:
                item["step"] = definition.step
            if not definition.is_required:
                item["required"] = False
            if definition.depends_on:
                item["depends_on"] = {parent: list(allowed) for parent, allowed in definition.depends_on.items()}
            config["parameters"][name] = item
        return config

    @property
    def names(self) -> list[str]:
        return list(self.parameters)

    def add_validator(self, validator: Validator) -> None:
        """Register an additional validator executed after built-in checks."""
        self.validators.append(validator)

    def is_active(self, definition: ParameterDefinition, values: Mapping[str, Any]) -> bool:
        """Return True when every dependency condition of ``definition`` holds for ``values``."""
        if not definition.depends_on:
            return True
        for parent, allowed in definition.depends_on.items():
            if parent not in values or values[parent] not in allowed:
                return False
        return True

    def validate(self, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate and normalise a candidate.

        Args:
            parameters: Arbitrary mapping with candidate parameter values.

        Returns:
            A cleaned dictionary containing validated parameter values.

        Raises:
            InvalidCandidateError: When required parameters are missing, values fall outside the allowed
                domain, dependency conditions are violated or unknown parameters are supplied.
        """
        validated: dict[str, Any] = {}
        provided_keys = set(parameters.keys())

        extra_keys = sorted(provided_keys - set(self.parameters))
        if extra_keys:
            raise InvalidCandidateError(f"Unknown parameter(s): {', '.join(extra_keys)}")

        for name, definition in self.parameters.items():
            active = self.is_active(definition, parameters)
            if name not in provided_keys:
                if definition.is_required and active:
                    raise InvalidCandidateError(f"Missing required parameter: {name}")
                continue
            if not active:
                raise InvalidCandidateError(
                    f"Parameter {name} is set although its condition {dict(definition.depends_on or {})} does not hold"
                )
            validated[name] = self._validate_value(definition, parameters[name])

        for validator in self.validators:
            try:
                validator(validated)
            except InvalidCandidateError:
                raise
            except ValueError as exc:
                raise InvalidCandidateError(str(exc)) from exc

        return validated

    def transform(self, parameters: Mapping[str, Any]) -> dict[str, Any]:
        """Apply the configured value transformation, or return a plain copy."""
        if self.trafo is None:
            return dict(parameters)
        return dict(self.trafo(dict(parameters)))

    def grid(
        self,
        overrides: Mapping[str, Sequence[Any]] | None = None,
        *,
        resolution: int | Mapping[str, int] | None = None,
    ) -> Dict[str, tuple[Any, ...]]:
        """
        Build a dictionary of parameter -> candidate sequence for grid search.

        Args:
            overrides: Optional mapping with explicit candidate lists for selected parameters.
            resolution: Points per numeric range, either one value for all parameters or per parameter.

        Returns:
            Ordered dictionary with tuples of candidate values.
        """
        candidates: Dict[str, tuple[Any, ...]] = {}
        overrides = overrides or {}

        unexpected_overrides = set(overrides) - set(self.parameters)
        if unexpected_overrides:
            unexpected = ", ".join(sorted(unexpected_overrides))
            raise ValueError(f"Overrides provided for unknown parameters: {unexpected}")

        for name, definition in self.parameters.items():
            if name in overrides:
                override_values = tuple(overrides[name])
                if not override_values:
                    raise ValueError(f"Override for parameter {name} must contain at least one value")
                candidates[name] = override_values
                continue
            points = resolution.get(name) if isinstance(resolution, Mapping) else resolution
            if definition.step is not None and points is None:
                candidates[name] = definition.generate_candidates()
            else:
                candidates[name] = definition.generate_candidates(points)
        return candidates

    def iter_grid(
        self,
        overrides: Mapping[str, Sequence[Any]] | None = None,
        *,
        resolution: int | Mapping[str, int] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Iterate once over the cartesian product of the grid, skipping inactive and duplicate points."""
        grid_definition = self.grid(overrides, resolution=resolution)
        if not grid_definition:
            return

        keys = list(grid_definition.keys())
        seen: set[tuple[tuple[str, Any], ...]] = set()
        for combination in product(*(grid_definition[key] for key in keys)):
            candidate = self._strip_inactive(dict(zip(keys, combination)))
            signature = tuple(sorted(candidate.items(), key=lambda item: item[0]))
            if signature in seen:
                continue
            seen.add(signature)
            try:
                yield self.validate(candidate)
            except InvalidCandidateError:
                continue

    def sample(self, rng: random.Random) -> dict[str, Any]:
        """Draw one candidate, sampling a dimension only when its condition holds."""
        candidate: dict[str, Any] = {}
        for name, definition in self._dependency_order():
            if not self.is_active(definition, candidate):
                continue
            if not definition.is_required and rng.random() < 0.5:
                continue
            candidate[name] = definition.sample(rng)
        return {name: candidate[name] for name in self.parameters if name in candidate}

    def _strip_inactive(self, candidate: dict[str, Any]) -> dict[str, Any]:
        stripped: dict[str, Any] = {}
        for name, definition in self._dependency_order():
            if name in candidate and self.is_active(definition, stripped):
                stripped[name] = candidate[name]
        return {name: stripped[name] for name in self.parameters if name in stripped}

    def _dependency_order(self) -> list[tuple[str, ParameterDefinition]]:
        """Order definitions so that every parent precedes its dependants."""
        ordered: list[tuple[str, ParameterDefinition]] = []
        placed: set[str] = set()
        pending = dict(self.parameters)
        while pending:
            progressed = False
            for name, definition in list(pending.items()):
                parents = set(definition.depends_on or {})
                if parents <= placed:
                    ordered.append((name, definition))
                    placed.add(name)
                    del pending[name]
                    progressed = True
            if not progressed:
                raise ValueError(f"Cyclic parameter dependencies among: {', '.join(sorted(pending))}")
        return ordered

    def _validate_value(self, definition: ParameterDefinition, value: Any) -> Any:
        """Validate a single parameter value against its definition."""
        if definition.is_discrete():
            assert definition.values is not None  # for type checkers
            if value not in definition.values or (definition.kind == "bool" and not isinstance(value, (bool, np.bool_))):
                allowed = ", ".join(map(repr, definition.values))
                raise InvalidCandidateError(
                    f"Value {value!r} is not permitted for parameter {definition.name}. Allowed: {allowed}"
                )
            return bool(value) if definition.kind == "bool" else value

        if definition.lower_bound is None and definition.upper_bound is None:
            raise InvalidCandidateError(f"Parameter {definition.name} has no validation rule for value {value!r}")

        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise InvalidCandidateError(
                f"Parameter {definition.name} expects numeric values, got {type(value).__name__}"
            )
        if not math.isfinite(value):
            raise InvalidCandidateError(f"Parameter {definition.name} expects a finite value, got {value!r}")
        if definition.kind == "int" and not float(value).is_integer():
            raise InvalidCandidateError(f"Parameter {definition.name} expects an integer, got {value!r}")

        lower = definition.lower_bound
        upper = definition.upper_bound
        if lower is not None and value < lower:
            raise InvalidCandidateError(
                f"Value {value!r} is below lower bound {lower!r} for parameter {definition.name}"
            )
        if upper is not None and value > upper:
            raise InvalidCandidateError(
                f"Value {value!r} is above upper bound {upper!r} for parameter {definition.name}"
            )

        if definition.step is not None and lower is not None:
            offset = (Decimal(str(value)) - Decimal(str(lower))) / Decimal(str(definition.step))
            if offset % 1 and not _is_close_to_integer(offset):
                raise InvalidCandidateError(
                    f"Value {value!r} for parameter {definition.name} does not align with step {definition.step}"
                )
        return definition._coerce(value)


class FeatureSpace(ParameterSpace):
    """Search space over feature subsets: one boolean inclusion flag per feature."""

    def __init__(self, features: Sequence[str], *, max_features: int | None = None) -> None:
        names = [str(feature) for feature in features]
        if not names:
            raise ValueError("FeatureSpace requires at least one feature")
        if len(set(names)) != len(names):
            raise ValueError("Feature names must be unique")
        if max_features is not None and not 1 <= max_features:
            raise ValueError("max_features must be a positive integer")
        definitions = {name: ParameterDefinition(name=name, kind="bool") for name in names}
        super().__init__(parameters=definitions)
        self.features = names
        self.max_features = min(max_features, len(names)) if max_features is not None else len(names)
        self.add_validator(self._check_subset_size)

    def selected(self, candidate: Mapping[str, Any]) -> list[str]:
        """Return the included features of ``candidate`` in feature order."""
        return [name for name in self.features if candidate.get(name)]

    def candidate_from(self, features: Iterable[str]) -> dict[str, bool]:
        """Build a full inclusion mapping from a collection of selected feature names."""
        chosen = set(features)
        unknown = chosen - set(self.features)
        if unknown:
            raise InvalidCandidateError(f"Unknown feature(s): {', '.join(sorted(unknown))}")
        return {name: name in chosen for name in self.features}

    def sample(self, rng: random.Random) -> dict[str, Any]:
        size = rng.randint(1, self.max_features)
        return self.candidate_from(rng.sample(self.features, size))

    def _check_subset_size(self, candidate: dict[str, Any]) -> None:
        size = sum(1 for value in candidate.values() if value)
        if size == 0:
            raise InvalidCandidateError("A feature subset must include at least one feature")
        if size > self.max_features:
            raise InvalidCandidateError(f"Feature subset of size {size} exceeds max_features={self.max_features}")


def _is_close_to_integer(value: Decimal) -> bool:
    """Return True when the decimal value is effectively an integer."""
    nearest = value.to_integral_value()
    return abs(value - nearest) <= _DECIMAL_TOLERANCE


def _coerce_decimal(value: Decimal) -> Any:
    """Convert Decimal back to int or float, preserving integer representations."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _infer_kind(raw_definition: Mapping[str, Any]) -> str:
    values = raw_definition.get("values")
    if values is not None:
        if all(isinstance(value, bool) for value in values):
            return "bool"
        return "categorical"
    bounds = [raw_definition.get("lower_bound"), raw_definition.get("upper_bound"), raw_definition.get("step")]
    if all(value is None or (isinstance(value, int) and not isinstance(value, bool)) for value in bounds):
        return "int"
    return "float"


def _as_tuple(values: Sequence[Any] | None) -> tuple[Any, ...] | None:
    if values is None:
        return None
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return (values,)
    return tuple(values)
