"""Access rules that gate whether a scene can be entered."""
from __future__ import annotations

import operator
from typing import Callable, Dict, Iterable, Sequence

from storyflow.core.types import ConditionOp
from storyflow.domain.defs import Condition
from storyflow.domain.variables import Variable, find_variable

_COMPARATORS: Dict[ConditionOp, Callable[[float, float], bool]] = {
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
    "neq": operator.ne,
    "gte": operator.ge,
    "gt": operator.gt,
}

_SYMBOLS: Dict[ConditionOp, str] = {
    "lt": "<",
    "lte": "<=",
    "eq": "=",
    "neq": "!=",
    "gte": ">=",
    "gt": ">",
}


def evaluate_condition(variables: Iterable[Variable], condition: Condition) -> bool:
    """Return True when the named variable exists and satisfies the comparison."""
    variable = find_variable(variables, condition.var_name)
    if variable is None:
        return False
    comparator = _COMPARATORS.get(condition.op)
    if comparator is None:
        return False
    return comparator(variable.value, condition.value)


def evaluate(
    variables: Sequence[Variable],
    conditions: Condition | Sequence[Condition] | None,
) -> bool:
    """Evaluate a single condition or a conjunction of conditions.

    ``None`` and an empty sequence are always satisfied. A condition naming
    an unknown variable is never satisfied.
    """
    if conditions is None:
        return True
    if isinstance(conditions, Condition):
        return evaluate_condition(variables, conditions)
    return all(evaluate_condition(variables, condition) for condition in conditions)


def condition_label(condition: Condition) -> str:
    """Render a condition for display, e.g. ``energy >= 3``."""
    symbol = _SYMBOLS.get(condition.op, condition.op)
    return f"{condition.var_name} {symbol} {_format_number(condition.value)}"


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
