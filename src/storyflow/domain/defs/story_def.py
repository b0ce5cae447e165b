"""Story graph definition structures used by the runtime."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping, Tuple, Union

from storyflow.core.types import ConditionOp


@dataclass(frozen=True, slots=True)
class Condition:
    """Comparison of one variable against a constant."""

    var_name: str
    op: ConditionOp
    value: float


@dataclass(frozen=True, slots=True)
class SceneNodeDef:
    """Content node with a duration, access conditions and a default choice."""

    id: str
    label: str
    duration_sec: float = 0
    description: str | None = None
    conditions: Tuple[Condition, ...] = ()
    default_choice_id: str | None = None
    video_segment_id: str | None = None
    kind: Literal["scene"] = field(default="scene", init=False)


@dataclass(frozen=True, slots=True)
class ChoiceNodeDef:
    """Player decision carrying variable deltas."""

    id: str
    label: str
    effects: Mapping[str, int] = field(default_factory=dict)
    kind: Literal["choice"] = field(default="choice", init=False)


@dataclass(frozen=True, slots=True)
class EdgeDef:
    """Directed connection between two nodes."""

    id: str
    source: str
    target: str


StoryNode = Union[SceneNodeDef, ChoiceNodeDef]
