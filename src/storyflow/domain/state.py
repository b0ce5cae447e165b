"""Domain-level state tracking for a playthrough."""
from __future__ import annotations

from dataclasses import dataclass

from storyflow.core.types import GameMode


@dataclass
class GameState:
    """Live play-session state; never persisted."""

    mode: GameMode = "edit"
    current_node_id: str | None = None
    is_game_over: bool = False
    last_choice_id: str | None = None
