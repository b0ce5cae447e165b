"""Domain definition exports."""

from .story_def import ChoiceNodeDef, Condition, EdgeDef, SceneNodeDef, StoryNode

__all__ = [
    "ChoiceNodeDef",
    "Condition",
    "EdgeDef",
    "SceneNodeDef",
    "StoryNode",
]
