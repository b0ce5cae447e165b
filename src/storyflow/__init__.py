"""Story graph runtime for branching, timed interactive narratives."""

__version__ = "0.1.0"
