"""Bounded numeric counters that make up player state."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable


@dataclass(frozen=True, slots=True)
class Variable:
    """Named counter with an initial value and optional bounds."""

    name: str
    value: float
    initial_value: float
    min: float | None = None
    max: float | None = None

    def with_value(self, value: float) -> "Variable":
        """Return a copy holding ``value`` clamped to this variable's bounds."""
        return replace(self, value=clamp(value, self.min, self.max))


def clamp(value: float, minimum: float | None = None, maximum: float | None = None) -> float:
    """Clamp ``value`` into ``[minimum, maximum]`` where bounds are defined."""
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


def create_variable(
    name: str,
    initial_value: float = 0,
    minimum: float | None = None,
    maximum: float | None = None,
) -> Variable:
    """Build a variable whose current value starts at its initial value."""
    return Variable(
        name=name,
        value=initial_value,
        initial_value=initial_value,
        min=minimum,
        max=maximum,
    )


def find_variable(variables: Iterable[Variable], name: str) -> Variable | None:
    for variable in variables:
        if variable.name == name:
            return variable
    return None
