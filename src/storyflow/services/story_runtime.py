"""Play-mode state machine that drives a story graph."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Literal, Tuple

from storyflow.core.scheduler import Scheduler, TimerHandle
from storyflow.core.types import GameMode
from storyflow.domain.conditions import evaluate
from storyflow.domain.defs import ChoiceNodeDef, SceneNodeDef, StoryNode
from storyflow.domain.effects import apply_effects, reset_to_initial
from storyflow.domain.state import GameState
from storyflow.domain.variables import Variable
from storyflow.services.graph_store import StoryGraph
from storyflow.services.variable_store import VariableStore

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS = 100

ChoiceStatus = Literal["ignored", "locked", "moved"]


@dataclass(frozen=True, slots=True)
class RuntimeSnapshot:
    """Read-only view published to observers after every change and tick."""

    mode: GameMode
    current_node_id: str | None
    is_game_over: bool
    remaining_ms: int | None
    last_choice_id: str | None
    variables: Tuple[Variable, ...]
    video_segment_id: str | None = None
    # bumped on every scene entry, including re-entering the same scene
    entry_id: int = 0


@dataclass(frozen=True, slots=True)
class ChoiceView:
    """A choice offered by the current scene, as the UI should present it."""

    choice_id: str
    label: str
    target_id: str | None
    target_unlocked: bool


@dataclass(frozen=True, slots=True)
class ChoiceResult:
    """Outcome of ``StoryRuntime.resolve_choice``."""

    status: ChoiceStatus
    choice_id: str
    node_id: str | None

    @property
    def moved(self) -> bool:
        return self.status == "moved"


SnapshotListener = Callable[[RuntimeSnapshot], None]


class StoryRuntime:
    """Tracks the current scene, auto-advances timed scenes and resolves choices.

    The runtime owns at most one tick task and one expiry task, both tied to
    the current scene. Each is scheduled with the generation number that was
    current when the scene was entered; entering another scene or stopping
    bumps the generation, so a callback that fires late does nothing.

    No public action raises. Malformed graphs degrade to ignored actions and
    the only terminal outcome is game over.
    """

    def __init__(
        self,
        graph: StoryGraph,
        variables: VariableStore,
        scheduler: Scheduler,
        *,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    ) -> None:
        self._graph = graph
        self._variables = variables
        self._scheduler = scheduler
        self._tick_interval_ms = tick_interval_ms
        self._state = GameState()
        self._generation = 0
        self._tick_handle: TimerHandle | None = None
        self._expiry_handle: TimerHandle | None = None
        self._deadline_ms: float | None = None
        self._entry_id = 0
        self._listeners: List[SnapshotListener] = []
        self._unsubscribe_graph: Callable[[], None] | None = None

    # Lifecycle

    def init(self) -> None:
        """Start watching the graph for edits made during a playthrough."""
        if self._unsubscribe_graph is None:
            self._unsubscribe_graph = self._graph.subscribe(self._on_graph_changed)

    def dispose(self) -> None:
        """Stop play, cancel timers and detach from collaborators."""
        self.stop()
        if self._unsubscribe_graph is not None:
            self._unsubscribe_graph()
            self._unsubscribe_graph = None
        self._listeners.clear()

    # Observable state

    @property
    def mode(self) -> GameMode:
        return self._state.mode

    @property
    def is_game_over(self) -> bool:
        return self._state.is_game_over

    @property
    def current_node_id(self) -> str | None:
        return self._state.current_node_id

    @property
    def current_node(self) -> StoryNode | None:
        return self._graph.get_node(self._state.current_node_id)

    @property
    def last_choice_id(self) -> str | None:
        return self._state.last_choice_id

    @property
    def remaining_ms(self) -> int | None:
        """Milliseconds left on the current scene's timer, or None without one."""
        if self._deadline_ms is None:
            return None
        return max(0, round(self._deadline_ms - self._scheduler.now_ms()))

    def snapshot(self) -> RuntimeSnapshot:
        node = self.current_node
        video_segment_id = node.video_segment_id if isinstance(node, SceneNodeDef) else None
        return RuntimeSnapshot(
            mode=self._state.mode,
            current_node_id=self._state.current_node_id,
            is_game_over=self._state.is_game_over,
            remaining_ms=self.remaining_ms,
            last_choice_id=self._state.last_choice_id,
            variables=self._variables.variables,
            video_segment_id=video_segment_id,
            entry_id=self._entry_id,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register an observer; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Public actions

    def start(self, start_node_id: str) -> None:
        """Begin a fresh playthrough from ``start_node_id``.

        Variables always restart from their initial values. A missing start
        node, or one that is not a scene, ends the playthrough immediately.
        """
        self._cancel_timers()
        self._variables.replace(reset_to_initial(self._variables.variables))
        self._state = GameState(mode="play", current_node_id=start_node_id)
        node = self._graph.get_node(start_node_id)
        if not isinstance(node, SceneNodeDef):
            logger.warning(f"Start node '{start_node_id}' is missing or not a scene")
            self._state.current_node_id = None
            self._end_game("no start scene")
            return
        logger.info(f"Playthrough started at '{start_node_id}'")
        self._enter_scene(node)

    def stop(self) -> None:
        """Leave play mode and cancel any pending timer."""
        self._cancel_timers()
        was_playing = self._state.mode == "play"
        self._state = GameState(mode="edit")
        if was_playing:
            logger.info("Playthrough stopped")
        self._notify()

    def reset(self, start_node_id: str) -> None:
        """Replay from scratch."""
        self.stop()
        self.start(start_node_id)

    def resolve_choice(self, choice_id: str) -> ChoiceResult:
        """Pay a choice's effects, then move to its target if the target is unlocked.

        Effects apply before the target's conditions are checked, so a
        choice leading to a locked scene still costs what it costs.
        """
        if not self._is_playing():
            return self._ignored(choice_id, "not playing")
        choice = self._graph.get_node(choice_id)
        if not isinstance(choice, ChoiceNodeDef):
            return self._ignored(choice_id, "not a choice")
        if not self.is_choice_available(choice_id):
            return self._ignored(choice_id, "not offered by the current scene")
        target = self._graph.get_node(self._graph.get_edge_target(choice_id))
        if not isinstance(target, SceneNodeDef):
            return self._ignored(choice_id, "no target scene")

        self._variables.replace(apply_effects(self._variables.variables, choice.effects))
        self._state.last_choice_id = choice.id
        if not evaluate(self._variables.variables, target.conditions):
            logger.info(f"Choice '{choice.id}' led to locked scene '{target.id}'")
            self._notify()
            return ChoiceResult(status="locked", choice_id=choice.id, node_id=self._state.current_node_id)

        logger.info(f"Choice '{choice.id}' moved play to '{target.id}'")
        self._enter_scene(target)
        return ChoiceResult(status="moved", choice_id=choice.id, node_id=target.id)

    def is_choice_available(self, choice_id: str) -> bool:
        """Whether ``choice_id`` hangs off the current scene by its incoming edge."""
        if not self._is_playing() or self._state.current_node_id is None:
            return False
        if not isinstance(self._graph.get_node(choice_id), ChoiceNodeDef):
            return False
        return self._graph.get_incoming_source(choice_id) == self._state.current_node_id

    def available_choices(self) -> List[ChoiceView]:
        """Choices offered by the current scene, with their targets' lock state."""
        if not self._is_playing() or self._state.current_node_id is None:
            return []
        views: List[ChoiceView] = []
        for choice in self._graph.get_outgoing_choices(self._state.current_node_id):
            target_id = self._graph.get_edge_target(choice.id)
            target = self._graph.get_node(target_id)
            unlocked = isinstance(target, SceneNodeDef) and evaluate(
                self._variables.variables, target.conditions
            )
            views.append(
                ChoiceView(
                    choice_id=choice.id,
                    label=choice.label,
                    target_id=target_id,
                    target_unlocked=unlocked,
                )
            )
        return views

    # Node entry and timers

    def _enter_scene(self, scene: SceneNodeDef) -> None:
        self._cancel_timers()
        generation = self._generation
        self._entry_id += 1
        self._state.current_node_id = scene.id
        if scene.duration_sec > 0:
            total_ms = scene.duration_sec * 1000
            self._deadline_ms = self._scheduler.now_ms() + total_ms
            self._expiry_handle = self._scheduler.call_later(
                total_ms, partial(self._on_expired, generation)
            )
            self._tick_handle = self._scheduler.call_later(
                self._tick_interval_ms, partial(self._on_tick, generation)
            )
        else:
            self._expiry_handle = self._scheduler.call_soon(partial(self._on_expired, generation))
        self._notify()

    def _on_tick(self, generation: int) -> None:
        if generation != self._generation or self._deadline_ms is None:
            return
        remaining = self.remaining_ms
        self._notify()
        if generation != self._generation:
            return
        if remaining:
            self._tick_handle = self._scheduler.call_later(
                self._tick_interval_ms, partial(self._on_tick, generation)
            )
        else:
            self._tick_handle = None

    def _on_expired(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug(f"Ignoring stale expiry for generation {generation}")
            return
        self._cancel_timers()
        if not self._is_playing():
            return
        scene = self._graph.get_node(self._state.current_node_id)
        if not isinstance(scene, SceneNodeDef):
            self._end_game("current scene no longer exists")
            return
        choices = self._graph.get_outgoing_choices(scene.id)
        if scene.default_choice_id and any(c.id == scene.default_choice_id for c in choices):
            logger.debug(f"Scene '{scene.id}' expired; taking default '{scene.default_choice_id}'")
            self.resolve_choice(scene.default_choice_id)
            return
        if not choices:
            self._end_game(f"scene '{scene.id}' has no continuation")
            return
        logger.debug(f"Scene '{scene.id}' expired; waiting for a choice")
        self._notify()

    def _cancel_timers(self) -> None:
        self._generation += 1
        for handle in (self._tick_handle, self._expiry_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._expiry_handle = None
        self._deadline_ms = None

    # Helpers

    def _on_graph_changed(self) -> None:
        if not self._is_playing():
            return
        if isinstance(self._graph.get_node(self._state.current_node_id), SceneNodeDef):
            return
        self._end_game("current scene was removed from the graph")

    def _end_game(self, reason: str) -> None:
        self._cancel_timers()
        self._state.is_game_over = True
        logger.info(f"Game over: {reason}")
        self._notify()

    def _is_playing(self) -> bool:
        return self._state.mode == "play" and not self._state.is_game_over

    def _ignored(self, choice_id: str, reason: str) -> ChoiceResult:
        logger.debug(f"Ignoring choice '{choice_id}': {reason}")
        return ChoiceResult(status="ignored", choice_id=choice_id, node_id=self._state.current_node_id)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Runtime listener {listener!r} failed")
