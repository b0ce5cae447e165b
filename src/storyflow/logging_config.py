"""Logging setup for the command line entry points."""
from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout.

    Module loggers are created with ``logging.getLogger(__name__)`` and
    inherit this level. Runtime transitions log at INFO; ignored actions
    and timer fires log at DEBUG.
    """
    root_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
