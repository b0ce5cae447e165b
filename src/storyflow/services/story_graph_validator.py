"""Static story graph validation utilities."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, MutableMapping, Sequence

from storyflow.core.types import CONDITION_OPS
from storyflow.domain.defs import ChoiceNodeDef, SceneNodeDef
from storyflow.domain.variables import Variable
from storyflow.services.graph_store import StoryGraph

Severity = str


@dataclass(frozen=True, slots=True)
class Issue:
    severity: Severity
    code: str
    message: str
    context: dict[str, str]


def format_issue(issue: Issue) -> str:
    context = " ".join(f"{key}={value}" for key, value in issue.context.items())
    suffix = f" ({context})" if context else ""
    return f"[{issue.severity}] {issue.code}: {issue.message}{suffix}"


def validate_story_graph(
    graph: StoryGraph,
    variables: Sequence[Variable] = (),
    *,
    start_node_id: str | None = None,
    error_on_autoadvance_cycle: bool = True,
) -> list[Issue]:
    """Report structural problems the runtime would silently tolerate.

    The runtime never fails on these; it ignores the broken parts, so an
    author only notices them as dead ends during play.
    """
    issues: list[Issue] = []
    start_id = start_node_id or graph.start_node_id
    node_ids = {node.id for node in graph.nodes()}

    start_node = graph.get_node(start_id)
    if start_node is None:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_START_NODE",
                message="Start node does not exist.",
                context={"node_id": start_id},
            )
        )
    elif not isinstance(start_node, SceneNodeDef):
        issues.append(
            Issue(
                severity="ERROR",
                code="START_NODE_NOT_SCENE",
                message="Start node must be a scene.",
                context={"node_id": start_id},
            )
        )

    _validate_edges(graph, node_ids, issues)
    for choice in graph.choices():
        _validate_choice_shape(graph, choice, issues)
    for scene in graph.scenes():
        _validate_scene(graph, scene, issues)
    variable_names = {variable.name for variable in variables}
    _validate_variable_references(graph, variable_names, issues)
    _validate_reachability(graph, start_id, issues)
    _validate_auto_advance_cycles(
        graph, issues, error_on_autoadvance_cycle=error_on_autoadvance_cycle
    )
    return issues


def _validate_edges(graph: StoryGraph, node_ids: set[str], issues: list[Issue]) -> None:
    for edge in graph.edges():
        for field_name, referenced_id in (("source", edge.source), ("target", edge.target)):
            if referenced_id in node_ids:
                continue
            issues.append(
                Issue(
                    severity="ERROR",
                    code="DANGLING_EDGE",
                    message=f"Edge {field_name} references missing node.",
                    context={"edge_id": edge.id, "referenced_id": referenced_id},
                )
            )
        source = graph.get_node(edge.source)
        target = graph.get_node(edge.target)
        if isinstance(source, SceneNodeDef) and isinstance(target, SceneNodeDef):
            issues.append(
                Issue(
                    severity="WARN",
                    code="SCENE_TO_SCENE_EDGE",
                    message="Scenes only continue through choices; this edge is never followed.",
                    context={"edge_id": edge.id, "source": edge.source, "target": edge.target},
                )
            )


def _validate_choice_shape(graph: StoryGraph, choice: ChoiceNodeDef, issues: list[Issue]) -> None:
    incoming = graph.incoming_edges(choice.id)
    outgoing = graph.outgoing_edges(choice.id)
    if len(incoming) != 1:
        issues.append(
            Issue(
                severity="ERROR",
                code="CHOICE_INCOMING_COUNT",
                message="Choice must be offered by exactly one scene.",
                context={"node_id": choice.id, "count": str(len(incoming))},
            )
        )
    if len(outgoing) != 1:
        issues.append(
            Issue(
                severity="ERROR",
                code="CHOICE_OUTGOING_COUNT",
                message="Choice must lead to exactly one scene.",
                context={"node_id": choice.id, "count": str(len(outgoing))},
            )
        )
    for edge in incoming:
        if not isinstance(graph.get_node(edge.source), SceneNodeDef):
            issues.append(
                Issue(
                    severity="ERROR",
                    code="CHOICE_SOURCE_NOT_SCENE",
                    message="Choice must be offered by a scene.",
                    context={"node_id": choice.id, "referenced_id": edge.source},
                )
            )
    for edge in outgoing:
        if not isinstance(graph.get_node(edge.target), SceneNodeDef):
            issues.append(
                Issue(
                    severity="ERROR",
                    code="CHOICE_TARGET_NOT_SCENE",
                    message="Choice must lead to a scene.",
                    context={"node_id": choice.id, "referenced_id": edge.target},
                )
            )


def _validate_scene(graph: StoryGraph, scene: SceneNodeDef, issues: list[Issue]) -> None:
    if scene.duration_sec < 0:
        issues.append(
            Issue(
                severity="ERROR",
                code="NEGATIVE_DURATION",
                message="Scene duration must be zero or positive.",
                context={"node_id": scene.id},
            )
        )
    for index, condition in enumerate(scene.conditions):
        if condition.op not in CONDITION_OPS:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="UNKNOWN_CONDITION_OP",
                    message="Condition operator is not recognized; the scene stays locked.",
                    context={"node_id": scene.id, "field_path": f"conditions[{index}].op"},
                )
            )
    if scene.default_choice_id is None:
        return
    offered = {choice.id for choice in graph.get_outgoing_choices(scene.id)}
    if scene.default_choice_id not in offered:
        issues.append(
            Issue(
                severity="ERROR",
                code="DEFAULT_CHOICE_NOT_OFFERED",
                message="Default choice is not one of the scene's outgoing choices.",
                context={"node_id": scene.id, "referenced_id": scene.default_choice_id},
            )
        )


def _validate_variable_references(
    graph: StoryGraph, variable_names: set[str], issues: list[Issue]
) -> None:
    for scene in graph.scenes():
        for index, condition in enumerate(scene.conditions):
            if condition.var_name in variable_names:
                continue
            issues.append(
                Issue(
                    severity="WARN",
                    code="UNKNOWN_CONDITION_VARIABLE",
                    message="Condition references an unknown variable; the scene is always locked.",
                    context={
                        "node_id": scene.id,
                        "field_path": f"conditions[{index}].var_name",
                        "referenced_id": condition.var_name,
                    },
                )
            )
    for choice in graph.choices():
        for name in sorted(choice.effects):
            if name in variable_names:
                continue
            issues.append(
                Issue(
                    severity="WARN",
                    code="UNKNOWN_EFFECT_VARIABLE",
                    message="Effect targets an unknown variable and will be ignored.",
                    context={"node_id": choice.id, "referenced_id": name},
                )
            )


def _validate_reachability(graph: StoryGraph, start_id: str, issues: list[Issue]) -> None:
    node_ids = {node.id for node in graph.nodes()}
    reachable: set[str] = set()
    stack: list[str] = [start_id] if start_id in node_ids else []
    while stack:
        node_id = stack.pop()
        if node_id in reachable:
            continue
        reachable.add(node_id)
        node = graph.get_node(node_id)
        if isinstance(node, SceneNodeDef):
            stack.extend(choice.id for choice in graph.get_outgoing_choices(node_id))
        elif isinstance(node, ChoiceNodeDef):
            target_id = graph.get_edge_target(node_id)
            if target_id in node_ids:
                stack.append(target_id)
    for node_id in sorted(node_ids - reachable):
        issues.append(
            Issue(
                severity="WARN",
                code="UNREACHABLE_NODE",
                message="Node is unreachable from the start scene.",
                context={"node_id": node_id},
            )
        )


def _validate_auto_advance_cycles(
    graph: StoryGraph,
    issues: list[Issue],
    *,
    error_on_autoadvance_cycle: bool,
) -> None:
    """Detect loops of zero-duration scenes that hop through default choices.

    Such a loop never waits for a timer or the player and keeps the runtime
    busy forever.
    """
    adjacency: MutableMapping[str, str] = {}
    for scene in graph.scenes():
        if scene.duration_sec != 0 or not scene.default_choice_id:
            continue
        next_scene = _default_target(graph, scene)
        if next_scene is not None and next_scene.duration_sec == 0:
            adjacency[scene.id] = next_scene.id

    visited: set[str] = set()
    stack: list[str] = []
    stack_set: set[str] = set()
    cycles: list[list[str]] = []

    def dfs(current: str) -> None:
        visited.add(current)
        stack.append(current)
        stack_set.add(current)
        next_node = adjacency.get(current)
        if next_node:
            if next_node not in visited:
                dfs(next_node)
            elif next_node in stack_set:
                cycle = stack[stack.index(next_node) :]
                cycles.append(cycle)
        stack.pop()
        stack_set.remove(current)

    for node_id in sorted(adjacency):
        if node_id not in visited:
            dfs(node_id)

    if not cycles:
        return
    severity = "ERROR" if error_on_autoadvance_cycle else "WARN"
    for cycle in cycles:
        cycle_path = " -> ".join(cycle + [cycle[0]])
        issues.append(
            Issue(
                severity=severity,
                code="AUTOADVANCE_CYCLE",
                message="Immediate scenes loop through default choices.",
                context={"cycle": cycle_path},
            )
        )


def _default_target(graph: StoryGraph, scene: SceneNodeDef) -> SceneNodeDef | None:
    offered: Dict[str, ChoiceNodeDef] = {
        choice.id: choice for choice in graph.get_outgoing_choices(scene.id)
    }
    if scene.default_choice_id not in offered:
        return None
    target = graph.get_node(graph.get_edge_target(scene.default_choice_id))
    return target if isinstance(target, SceneNodeDef) else None


def summarize(issues: Sequence[Issue]) -> Mapping[str, int]:
    """Count issues per severity."""
    counts: Dict[str, int] = {"ERROR": 0, "WARN": 0}
    for issue in issues:
        counts[issue.severity] = counts.get(issue.severity, 0) + 1
    return counts


__all__: List[str] = ["Issue", "format_issue", "summarize", "validate_story_graph"]
