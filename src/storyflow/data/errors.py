"""Custom exceptions for project loading and validation."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when project files are missing, unreadable or not JSON."""


class DataValidationError(DataError):
    """Raised when project content fails structural validation."""
