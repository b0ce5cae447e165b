"""Utilities for creating graph element identifiers."""
from __future__ import annotations

import secrets


def make_node_id(prefix: str) -> str:
    """Generate a unique identifier such as ``scene_3f9a1c2b``."""
    return f"{prefix}_{secrets.token_hex(4)}"
