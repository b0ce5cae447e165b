"""Data layer utilities for loading project JSON files."""

from .errors import DataError, DataLoadError, DataValidationError
from .paths import get_projects_path, get_repo_root

__all__ = [
    "DataError",
    "DataLoadError",
    "DataValidationError",
    "get_projects_path",
    "get_repo_root",
]
