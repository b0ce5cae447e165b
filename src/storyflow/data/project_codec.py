"""Conversion between project JSON payloads and typed definitions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from storyflow.core.types import CONDITION_OPS
from storyflow.data.errors import DataValidationError
from storyflow.domain.defs import ChoiceNodeDef, Condition, EdgeDef, SceneNodeDef, StoryNode
from storyflow.domain.variables import Variable

DEFAULT_START_NODE_ID = "scene_start"

ProjectPayload = Dict[str, Any]


@dataclass(slots=True)
class ProjectDef:
    """Durable part of a project: graph and variable definitions."""

    title: str
    version: str
    nodes: List[StoryNode] = field(default_factory=list)
    edges: List[EdgeDef] = field(default_factory=list)
    variables: Tuple[Variable, ...] = ()
    start_node_id: str = DEFAULT_START_NODE_ID
    description: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


def parse_project(raw: object) -> ProjectDef:
    """Validate a raw JSON payload and build a ProjectDef."""
    data = _require_mapping(raw, "project")
    title = _require_str(data.get("title"), "project.title")
    if not title:
        raise DataValidationError("project.title must not be empty.")
    version = _require_str(data.get("version", "1.0.0"), "project.version")
    start_node_id = _require_str(
        data.get("startNodeId", DEFAULT_START_NODE_ID), "project.startNodeId"
    )
    nodes = _parse_nodes(_require_list(data.get("nodes"), "project.nodes"))
    edges = _parse_edges(_require_list(data.get("edges", []), "project.edges"))
    variables = _parse_variables(_require_list(data.get("variables", []), "project.variables"))
    return ProjectDef(
        title=title,
        version=version,
        nodes=nodes,
        edges=edges,
        variables=variables,
        start_node_id=start_node_id,
        description=_optional_str(data.get("description"), "project.description"),
        created_at=_optional_str(data.get("createdAt"), "project.createdAt"),
        updated_at=_optional_str(data.get("updatedAt"), "project.updatedAt"),
    )


def dump_project(project: ProjectDef) -> ProjectPayload:
    """Return the JSON-serializable payload for a project."""
    payload: ProjectPayload = {
        "title": project.title,
        "version": project.version,
        "startNodeId": project.start_node_id,
        "variables": [_dump_variable(variable) for variable in project.variables],
        "nodes": [_dump_node(node) for node in project.nodes],
        "edges": [
            {"id": edge.id, "source": edge.source, "target": edge.target}
            for edge in project.edges
        ],
    }
    if project.description is not None:
        payload["description"] = project.description
    if project.created_at is not None:
        payload["createdAt"] = project.created_at
    if project.updated_at is not None:
        payload["updatedAt"] = project.updated_at
    return payload


def _parse_nodes(raw_nodes: list) -> List[StoryNode]:
    nodes: List[StoryNode] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_nodes):
        context = f"project.nodes[{index}]"
        node_data = _require_mapping(entry, context)
        node_id = _require_str(node_data.get("id"), f"{context}.id")
        if node_id in seen:
            raise DataValidationError(f"{context}.id '{node_id}' is duplicated.")
        seen.add(node_id)
        node_type = node_data.get("type")
        payload = _require_mapping(node_data.get("data", {}), f"{context}.data")
        if node_type == "scene":
            nodes.append(_parse_scene(node_id, payload, f"{context}.data"))
        elif node_type == "choice":
            nodes.append(_parse_choice(node_id, payload, f"{context}.data"))
        else:
            raise DataValidationError(f"{context}.type must be 'scene' or 'choice'.")
    return nodes


def _parse_scene(node_id: str, payload: Mapping[str, object], context: str) -> SceneNodeDef:
    duration = _require_number(payload.get("durationSec", 0), f"{context}.durationSec")
    if duration < 0:
        raise DataValidationError(f"{context}.durationSec must be zero or positive.")
    conditions: List[Condition] = []
    if "conditions" in payload and payload["conditions"] is not None:
        raw_conditions = _require_list(payload["conditions"], f"{context}.conditions")
        for index, entry in enumerate(raw_conditions):
            conditions.append(_parse_condition(entry, f"{context}.conditions[{index}]"))
    elif payload.get("condition") is not None:
        conditions.append(_parse_condition(payload["condition"], f"{context}.condition"))
    return SceneNodeDef(
        id=node_id,
        label=_require_str(payload.get("label", node_id), f"{context}.label"),
        description=_optional_str(payload.get("description"), f"{context}.description"),
        duration_sec=duration,
        conditions=tuple(conditions),
        default_choice_id=_optional_str(payload.get("defaultChoiceId"), f"{context}.defaultChoiceId"),
        video_segment_id=_optional_str(payload.get("videoId"), f"{context}.videoId"),
    )


def _parse_choice(node_id: str, payload: Mapping[str, object], context: str) -> ChoiceNodeDef:
    raw_effects = _require_mapping(payload.get("effects") or {}, f"{context}.effects")
    effects: Dict[str, int] = {}
    for name, delta in raw_effects.items():
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise DataValidationError(f"{context}.effects.{name} must be an integer.")
        effects[name] = delta
    return ChoiceNodeDef(
        id=node_id,
        label=_require_str(payload.get("label", node_id), f"{context}.label"),
        effects=effects,
    )


def _parse_condition(raw: object, context: str) -> Condition:
    data = _require_mapping(raw, context)
    var_name = _require_str(data.get("varName"), f"{context}.varName")
    op = data.get("op")
    if op not in CONDITION_OPS:
        raise DataValidationError(f"{context}.op must be one of {', '.join(CONDITION_OPS)}.")
    value = _require_number(data.get("value"), f"{context}.value")
    return Condition(var_name=var_name, op=op, value=value)


def _parse_edges(raw_edges: list) -> List[EdgeDef]:
    edges: List[EdgeDef] = []
    for index, entry in enumerate(raw_edges):
        context = f"project.edges[{index}]"
        edge_data = _require_mapping(entry, context)
        source = _require_str(edge_data.get("source"), f"{context}.source")
        target = _require_str(edge_data.get("target"), f"{context}.target")
        edge_id = edge_data.get("id")
        if edge_id is None:
            edge_id = f"e_{source}_{target}"
        edges.append(EdgeDef(id=_require_str(edge_id, f"{context}.id"), source=source, target=target))
    return edges


def _parse_variables(raw_variables: list) -> Tuple[Variable, ...]:
    variables: List[Variable] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_variables):
        context = f"project.variables[{index}]"
        var_data = _require_mapping(entry, context)
        name = _require_str(var_data.get("name"), f"{context}.name")
        if name in seen:
            raise DataValidationError(f"{context}.name '{name}' is duplicated.")
        seen.add(name)
        initial_value = _require_number(
            var_data.get("initialValue", var_data.get("value", 0)), f"{context}.initialValue"
        )
        value = _require_number(var_data.get("value", initial_value), f"{context}.value")
        minimum = _optional_number(var_data.get("min"), f"{context}.min")
        maximum = _optional_number(var_data.get("max"), f"{context}.max")
        if minimum is not None and maximum is not None and minimum > maximum:
            raise DataValidationError(f"{context} min must not exceed max.")
        variable = Variable(
            name=name,
            value=value,
            initial_value=initial_value,
            min=minimum,
            max=maximum,
        )
        variables.append(variable.with_value(value))
    return tuple(variables)


def _dump_variable(variable: Variable) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "name": variable.name,
        "value": variable.value,
        "initialValue": variable.initial_value,
    }
    if variable.min is not None:
        payload["min"] = variable.min
    if variable.max is not None:
        payload["max"] = variable.max
    return payload


def _dump_node(node: StoryNode) -> Dict[str, object]:
    if isinstance(node, SceneNodeDef):
        data: Dict[str, object] = {"label": node.label, "durationSec": node.duration_sec}
        if node.description is not None:
            data["description"] = node.description
        if node.conditions:
            data["conditions"] = [
                {"varName": condition.var_name, "op": condition.op, "value": condition.value}
                for condition in node.conditions
            ]
        if node.default_choice_id is not None:
            data["defaultChoiceId"] = node.default_choice_id
        if node.video_segment_id is not None:
            data["videoId"] = node.video_segment_id
        return {"id": node.id, "type": "scene", "data": data}
    return {
        "id": node.id,
        "type": "choice",
        "data": {"label": node.label, "effects": dict(node.effects)},
    }


def _require_mapping(value: object, context: str) -> dict:
    if not isinstance(value, dict):
        raise DataValidationError(f"{context} must be an object/dict.")
    return value


def _require_list(value: object, context: str) -> list:
    if not isinstance(value, list):
        raise DataValidationError(f"{context} must be a list.")
    return value


def _require_str(value: object, context: str) -> str:
    if not isinstance(value, str):
        raise DataValidationError(f"{context} must be a string.")
    return value


def _optional_str(value: object, context: str) -> str | None:
    if value is None:
        return None
    return _require_str(value, context)


def _require_number(value: object, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DataValidationError(f"{context} must be a number.")
    return value


def _optional_number(value: object, context: str) -> float | None:
    if value is None:
        return None
    return _require_number(value, context)
