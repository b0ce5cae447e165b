"""Shared CLI rendering helpers."""
from __future__ import annotations

import os
from typing import Iterable, Sequence

from storyflow.domain.conditions import condition_label
from storyflow.domain.defs import SceneNodeDef
from storyflow.domain.variables import Variable
from storyflow.services.story_graph_validator import Issue, format_issue
from storyflow.services.story_runtime import ChoiceView


def debug_enabled() -> bool:
    """Return True only when STORYFLOW_DEBUG is explicitly set to '1'."""
    return os.getenv("STORYFLOW_DEBUG") == "1"


def format_remaining(remaining_ms: int | None) -> str:
    if remaining_ms is None:
        return "--"
    return f"{remaining_ms / 1000:.1f}s"


def format_variables(variables: Iterable[Variable]) -> str:
    parts = [f"{variable.name}={variable.value:g}" for variable in variables]
    return ", ".join(parts) if parts else "(no variables)"


def render_scene(scene: SceneNodeDef, variables: Sequence[Variable]) -> list[str]:
    lines = [f"[{scene.id}] {scene.label}"]
    if scene.description:
        lines.append(scene.description)
    if scene.conditions:
        lines.append("Requires: " + " and ".join(condition_label(c) for c in scene.conditions))
    if scene.duration_sec > 0:
        lines.append(f"Duration: {scene.duration_sec:g}s")
    lines.append(f"Variables: {format_variables(variables)}")
    return lines


def render_choices(choices: Sequence[ChoiceView]) -> list[str]:
    if not choices:
        return []
    lines = ["Choices:"]
    for idx, choice in enumerate(choices, start=1):
        marker = "" if choice.target_unlocked else " (locked)"
        lines.append(f"  {idx}. {choice.label}{marker}")
    return lines


def render_issues(issues: Sequence[Issue]) -> list[str]:
    if not issues:
        return ["No issues found."]
    return [format_issue(issue) for issue in issues]
