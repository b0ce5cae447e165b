"""Pure transforms applied to variables when choices resolve."""
from __future__ import annotations

from typing import Iterable, Mapping, Tuple

from storyflow.domain.variables import Variable


def apply_effects(
    variables: Iterable[Variable],
    effects: Mapping[str, float] | None,
) -> Tuple[Variable, ...]:
    """Return a new collection with each variable shifted by its delta.

    Unlisted variables (delta 0) are returned as the same instance. Effect
    keys without a matching variable are ignored.
    """
    if not effects:
        return tuple(variables)
    updated = []
    for variable in variables:
        delta = effects.get(variable.name, 0)
        if delta == 0:
            updated.append(variable)
            continue
        updated.append(variable.with_value(variable.value + delta))
    return tuple(updated)


def reset_to_initial(variables: Iterable[Variable]) -> Tuple[Variable, ...]:
    """Return a new collection with every value back at its initial value."""
    return tuple(variable.with_value(variable.initial_value) for variable in variables)
