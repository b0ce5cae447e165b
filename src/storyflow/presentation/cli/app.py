"""Console front-end: validate, inspect and play story projects."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Sequence, Tuple

from storyflow.config import StoryflowConfig, load_config
from storyflow.core.scheduler import AsyncioScheduler
from storyflow.data.project_codec import ProjectDef
from storyflow.domain.defs import SceneNodeDef
from storyflow.presentation.cli.render import (
    debug_enabled,
    format_remaining,
    format_variables,
    render_choices,
    render_issues,
    render_scene,
)
from storyflow.services.errors import SaveLoadError
from storyflow.services.graph_store import StoryGraph
from storyflow.services.project_service import ProjectService
from storyflow.services.story_graph_validator import summarize, validate_story_graph
from storyflow.services.story_runtime import RuntimeSnapshot, StoryRuntime
from storyflow.services.variable_store import VariableStore

logger = logging.getLogger(__name__)

_QUIT_COMMANDS = ("q", "quit")
_RESET_COMMANDS = ("r", "reset")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyflow", description="Interactive story graph runtime.")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=_LOG_LEVELS,
        help="Override the configured log level.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Check a project file for structural problems.")
    validate.add_argument("path", type=Path)
    validate.add_argument(
        "--warn-cycles",
        action="store_true",
        help="Report auto-advance cycles as warnings instead of errors.",
    )

    info = subparsers.add_parser("info", help="Print a project's title, version and size.")
    info.add_argument("path", type=Path)

    play = subparsers.add_parser("play", help="Play a project in the terminal.")
    play.add_argument("path", type=Path)
    play.add_argument("--start", dest="start_node_id", help="Start from this scene instead.")
    return parser


def main(argv: Sequence[str] | None = None, config: StoryflowConfig | None = None) -> int:
    """Run one CLI command and return its exit status."""
    args = build_parser().parse_args(argv)
    config = config or load_config()
    if args.log_level:
        logging.getLogger().setLevel(args.log_level)
    elif args.command == "play":
        # stdout belongs to the story while playing
        logging.getLogger().setLevel(logging.WARNING)
    logger.debug(f"Running '{args.command}' on {args.path}")
    service = ProjectService()
    try:
        payload = service.load_project_file(args.path)
        if args.command == "info":
            return _run_info(service, payload)
        project = service.parse(payload)
    except SaveLoadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.command == "validate":
        return _run_validate(project, error_on_autoadvance_cycle=not args.warn_cycles)
    start_node_id = args.start_node_id or project.start_node_id
    return asyncio.run(_run_play(project, start_node_id, config.tick_interval_ms))


def _run_info(service: ProjectService, payload: dict) -> int:
    metadata = service.project_metadata(payload)
    print(f"{metadata['title']} (v{metadata['version']})")
    print(f"Nodes: {metadata['node_count']}  Edges: {metadata['edge_count']}")
    if metadata["updated_at"]:
        print(f"Updated: {metadata['updated_at']}")
    return 0


def _run_validate(project: ProjectDef, *, error_on_autoadvance_cycle: bool) -> int:
    graph = _build_graph(project)
    issues = validate_story_graph(
        graph,
        project.variables,
        error_on_autoadvance_cycle=error_on_autoadvance_cycle,
    )
    for line in render_issues(issues):
        print(line)
    counts = summarize(issues)
    print(f"{counts['ERROR']} error(s), {counts['WARN']} warning(s)")
    return 1 if counts["ERROR"] else 0


def _build_graph(project: ProjectDef) -> StoryGraph:
    return StoryGraph(project.nodes, project.edges, start_node_id=project.start_node_id)


class _PlaySession:
    """Prints runtime changes as they happen."""

    def __init__(self, runtime: StoryRuntime) -> None:
        self._runtime = runtime
        self._last_key: Tuple[object, ...] | None = None
        self._waiting_on: str | None = None

    def on_snapshot(self, snapshot: RuntimeSnapshot) -> None:
        if snapshot.mode != "play":
            self._last_key = None
            return
        key = (
            snapshot.entry_id,
            snapshot.current_node_id,
            snapshot.last_choice_id,
            snapshot.is_game_over,
        )
        if key != self._last_key:
            self._last_key = key
            self._waiting_on = None
            self.render(snapshot)
            return
        expired = snapshot.remaining_ms is None and snapshot.current_node_id is not None
        if expired and self._waiting_on != snapshot.current_node_id:
            self._waiting_on = snapshot.current_node_id
            if self._runtime.available_choices():
                print("Waiting for your choice.")

    def render(self, snapshot: RuntimeSnapshot) -> None:
        print()
        if snapshot.is_game_over:
            print("=== Game Over ===")
            print(f"Variables: {format_variables(snapshot.variables)}")
            print("Enter r to replay or q to quit.")
            return
        scene = self._runtime.current_node
        if not isinstance(scene, SceneNodeDef):
            return
        for line in render_scene(scene, snapshot.variables):
            print(line)
        if debug_enabled():
            print(f"(remaining {format_remaining(snapshot.remaining_ms)})")
        for line in render_choices(self._runtime.available_choices()):
            print(line)


async def _run_play(project: ProjectDef, start_node_id: str, tick_interval_ms: int) -> int:
    graph = _build_graph(project)
    variables = VariableStore(project.variables)
    runtime = StoryRuntime(
        graph, variables, AsyncioScheduler(), tick_interval_ms=tick_interval_ms
    )
    runtime.init()
    session = _PlaySession(runtime)
    runtime.subscribe(session.on_snapshot)
    print(f"=== {project.title} ===")
    runtime.start(start_node_id)
    loop = asyncio.get_running_loop()
    try:
        while True:
            try:
                raw = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            command = raw.strip().lower()
            if command in _QUIT_COMMANDS:
                break
            if command in _RESET_COMMANDS:
                runtime.reset(start_node_id)
                continue
            if not command:
                print(f"Time left: {format_remaining(runtime.remaining_ms)}")
                continue
            _handle_choice_input(runtime, command)
    finally:
        runtime.dispose()
    print("Goodbye!")
    return 0


def _handle_choice_input(runtime: StoryRuntime, command: str) -> None:
    choices = runtime.available_choices()
    if not choices:
        print("No choices right now.")
        return
    try:
        index = int(command)
    except ValueError:
        print("Please enter a number, r or q.")
        return
    if not 1 <= index <= len(choices):
        print(f"Please enter a value between 1 and {len(choices)}.")
        return
    result = runtime.resolve_choice(choices[index - 1].choice_id)
    if result.status == "locked":
        print("That path is locked for now.")


__all__: List[str] = ["build_parser", "main"]
