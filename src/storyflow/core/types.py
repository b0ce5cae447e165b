"""Shared type aliases for the core and domain layers."""
from typing import Literal

GameMode = Literal["edit", "play"]
ConditionOp = Literal["lt", "lte", "eq", "neq", "gte", "gt"]

CONDITION_OPS: tuple[ConditionOp, ...] = ("lt", "lte", "eq", "neq", "gte", "gt")

__all__ = ["CONDITION_OPS", "ConditionOp", "GameMode"]
