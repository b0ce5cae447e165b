"""Service-layer exceptions."""


class SaveLoadError(Exception):
    """Raised when project import or export fails."""


class GraphEditError(Exception):
    """Raised when an editor mutation on the story graph is invalid."""


class VariableStoreError(Exception):
    """Raised when an authoring action on variables is invalid."""
