"""Live variable collection shared by the editor and the runtime."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Tuple

from storyflow.domain.effects import reset_to_initial
from storyflow.domain.variables import Variable, clamp, create_variable, find_variable
from storyflow.services.errors import VariableStoreError

logger = logging.getLogger(__name__)

VariablesListener = Callable[[Tuple[Variable, ...]], None]


class VariableStore:
    """Holds the current variables as an immutable tuple.

    Every write swaps in a new tuple, so callers holding an earlier
    ``variables`` value keep an intact copy.
    """

    def __init__(self, variables: Iterable[Variable] = ()) -> None:
        self._variables: Tuple[Variable, ...] = tuple(variables)
        self._listeners: List[VariablesListener] = []

    @property
    def variables(self) -> Tuple[Variable, ...]:
        return self._variables

    def get(self, name: str) -> Variable | None:
        return find_variable(self._variables, name)

    def replace(self, variables: Iterable[Variable]) -> None:
        """Swap in a new collection; the runtime writes only through here."""
        self._variables = tuple(variables)
        for listener in list(self._listeners):
            listener(self._variables)

    def subscribe(self, listener: VariablesListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_variable(
        self,
        name: str,
        initial_value: float = 0,
        *,
        minimum: float | None = None,
        maximum: float | None = None,
    ) -> Variable:
        """Create a new variable starting at its initial value."""
        if not name:
            raise VariableStoreError("Variable name must not be empty.")
        if self.get(name) is not None:
            raise VariableStoreError(f"Variable '{name}' already exists.")
        self._check_bounds(name, minimum, maximum)
        variable = create_variable(name, clamp(initial_value, minimum, maximum), minimum, maximum)
        self.replace(self._variables + (variable,))
        logger.debug(f"Added variable '{name}' (initial={variable.initial_value})")
        return variable

    def remove_variable(self, name: str) -> None:
        self._require(name)
        self.replace(variable for variable in self._variables if variable.name != name)

    def set_value(self, name: str, value: float) -> Variable:
        """Set the current value, clamped to the variable's bounds."""
        updated = self._require(name).with_value(value)
        self._swap(updated)
        return updated

    def set_initial_value(self, name: str, initial_value: float) -> Variable:
        current = self._require(name)
        updated = replace(current, initial_value=clamp(initial_value, current.min, current.max))
        self._swap(updated)
        return updated

    def set_bounds(
        self, name: str, minimum: float | None = None, maximum: float | None = None
    ) -> Variable:
        """Change the bounds and re-clamp both the value and the initial value."""
        current = self._require(name)
        self._check_bounds(name, minimum, maximum)
        updated = replace(
            current,
            min=minimum,
            max=maximum,
            initial_value=clamp(current.initial_value, minimum, maximum),
        )
        updated = updated.with_value(current.value)
        self._swap(updated)
        return updated

    def reset(self) -> None:
        """Put every variable back to its initial value."""
        self.replace(reset_to_initial(self._variables))

    def _swap(self, updated: Variable) -> None:
        self.replace(
            updated if variable.name == updated.name else variable for variable in self._variables
        )

    def _require(self, name: str) -> Variable:
        variable = self.get(name)
        if variable is None:
            raise VariableStoreError(f"Unknown variable '{name}'.")
        return variable

    @staticmethod
    def _check_bounds(name: str, minimum: float | None, maximum: float | None) -> None:
        if minimum is not None and maximum is not None and minimum > maximum:
            raise VariableStoreError(f"Variable '{name}' min must not exceed max.")
