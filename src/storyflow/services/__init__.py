"""Service layer exports."""

from .errors import GraphEditError, SaveLoadError, VariableStoreError
from .graph_store import StoryGraph
from .variable_store import VariableStore
from .story_runtime import ChoiceResult, ChoiceView, RuntimeSnapshot, StoryRuntime
from .project_service import ProjectService

__all__ = [
    "GraphEditError",
    "SaveLoadError",
    "VariableStoreError",
    "StoryGraph",
    "VariableStore",
    "ChoiceResult",
    "ChoiceView",
    "RuntimeSnapshot",
    "StoryRuntime",
    "ProjectService",
]
