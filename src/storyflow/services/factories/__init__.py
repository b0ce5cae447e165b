"""Factories for runtime identifiers."""

from .id_factory import make_node_id

__all__ = ["make_node_id"]
