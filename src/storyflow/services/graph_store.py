"""In-memory story graph owned by the editor and read by the runtime."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List

from storyflow.data.project_codec import DEFAULT_START_NODE_ID
from storyflow.domain.defs import ChoiceNodeDef, EdgeDef, SceneNodeDef, StoryNode
from storyflow.services.errors import GraphEditError
from storyflow.services.factories import make_node_id

logger = logging.getLogger(__name__)

GraphListener = Callable[[], None]


class StoryGraph:
    """Node and edge set with the structural queries used during play.

    Queries never raise: a missing node or edge yields ``None`` or an empty
    list. Editor mutations raise ``GraphEditError`` and notify listeners
    after they succeed.
    """

    def __init__(
        self,
        nodes: Iterable[StoryNode] = (),
        edges: Iterable[EdgeDef] = (),
        *,
        start_node_id: str = DEFAULT_START_NODE_ID,
    ) -> None:
        self.start_node_id = start_node_id
        self._nodes: Dict[str, StoryNode] = {}
        self._edges: Dict[str, EdgeDef] = {}
        self._listeners: List[GraphListener] = []
        self._load(nodes, edges)

    # Runtime queries

    def get_node(self, node_id: str | None) -> StoryNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def get_outgoing_choices(self, scene_id: str) -> List[ChoiceNodeDef]:
        """Return choices reachable by one edge from ``scene_id``, in edge order."""
        choices: Dict[str, ChoiceNodeDef] = {}
        for edge in self._edges.values():
            if edge.source != scene_id:
                continue
            target = self._nodes.get(edge.target)
            if isinstance(target, ChoiceNodeDef):
                choices.setdefault(target.id, target)
        return list(choices.values())

    def get_edge_target(self, node_id: str) -> str | None:
        for edge in self._edges.values():
            if edge.source == node_id:
                return edge.target
        return None

    def get_incoming_source(self, node_id: str) -> str | None:
        for edge in self._edges.values():
            if edge.target == node_id:
                return edge.source
        return None

    # Listing

    def nodes(self) -> List[StoryNode]:
        return list(self._nodes.values())

    def edges(self) -> List[EdgeDef]:
        return list(self._edges.values())

    def scenes(self) -> List[SceneNodeDef]:
        return [node for node in self._nodes.values() if isinstance(node, SceneNodeDef)]

    def choices(self) -> List[ChoiceNodeDef]:
        return [node for node in self._nodes.values() if isinstance(node, ChoiceNodeDef)]

    def outgoing_edges(self, node_id: str) -> List[EdgeDef]:
        return [edge for edge in self._edges.values() if edge.source == node_id]

    def incoming_edges(self, node_id: str) -> List[EdgeDef]:
        return [edge for edge in self._edges.values() if edge.target == node_id]

    # Change notification

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # Editor mutations

    def add_node(self, node: StoryNode) -> StoryNode:
        if node.id in self._nodes:
            raise GraphEditError(f"Node '{node.id}' already exists.")
        self._nodes[node.id] = node
        self._notify()
        return node

    def add_scene(self, label: str, duration_sec: float = 5, **fields) -> SceneNodeDef:
        """Create a scene with a generated id."""
        scene = SceneNodeDef(id=make_node_id("scene"), label=label, duration_sec=duration_sec, **fields)
        self.add_node(scene)
        return scene

    def add_choice(self, label: str, effects: Dict[str, int] | None = None) -> ChoiceNodeDef:
        """Create a choice with a generated id."""
        choice = ChoiceNodeDef(id=make_node_id("choice"), label=label, effects=dict(effects or {}))
        self.add_node(choice)
        return choice

    def update_node(self, node: StoryNode) -> StoryNode:
        """Replace the definition stored under ``node.id``; the kind may not change."""
        current = self._nodes.get(node.id)
        if current is None:
            raise GraphEditError(f"Unknown node '{node.id}'.")
        if current.kind != node.kind:
            raise GraphEditError(f"Node '{node.id}' cannot change kind from {current.kind} to {node.kind}.")
        self._nodes[node.id] = node
        self._notify()
        return node

    def remove_node(self, node_id: str) -> List[str]:
        """Delete a node and its edges; return every removed node id.

        Deleting a scene also deletes neighbouring choices left with fewer
        than two links, since a choice needs an offering scene and a target.
        """
        if node_id == self.start_node_id:
            raise GraphEditError("The start node cannot be removed.")
        node = self._nodes.get(node_id)
        if node is None:
            raise GraphEditError(f"Unknown node '{node_id}'.")
        removed_nodes = [node_id]
        removed_edges = {
            edge.id for edge in self._edges.values() if node_id in (edge.source, edge.target)
        }
        if isinstance(node, SceneNodeDef):
            neighbour_ids = {
                edge.target if edge.source == node_id else edge.source
                for edge in self._edges.values()
                if edge.id in removed_edges
            }
            for choice in self.choices():
                if choice.id not in neighbour_ids:
                    continue
                links = [
                    edge
                    for edge in self._edges.values()
                    if choice.id in (edge.source, edge.target) and edge.id not in removed_edges
                ]
                if len(links) < 2:
                    removed_nodes.append(choice.id)
                    removed_edges.update(edge.id for edge in links)
        for removed_id in removed_nodes:
            del self._nodes[removed_id]
        for edge_id in removed_edges:
            del self._edges[edge_id]
        logger.debug(f"Removed nodes {removed_nodes} and {len(removed_edges)} edges")
        self._notify()
        return removed_nodes

    def add_edge(self, source: str, target: str, edge_id: str | None = None) -> EdgeDef:
        if source not in self._nodes:
            raise GraphEditError(f"Edge source '{source}' does not exist.")
        if target not in self._nodes:
            raise GraphEditError(f"Edge target '{target}' does not exist.")
        if source == target:
            raise GraphEditError("Edges cannot connect a node to itself.")
        if any(edge.source == source and edge.target == target for edge in self._edges.values()):
            raise GraphEditError(f"Edge {source} -> {target} already exists.")
        edge = EdgeDef(id=edge_id or make_node_id("edge"), source=source, target=target)
        if edge.id in self._edges:
            raise GraphEditError(f"Edge '{edge.id}' already exists.")
        self._edges[edge.id] = edge
        self._notify()
        return edge

    def remove_edge(self, edge_id: str) -> None:
        if self._edges.pop(edge_id, None) is None:
            raise GraphEditError(f"Unknown edge '{edge_id}'.")
        self._notify()

    def load(self, nodes: Iterable[StoryNode], edges: Iterable[EdgeDef]) -> None:
        """Replace the whole graph, e.g. after a project import."""
        self._nodes.clear()
        self._edges.clear()
        self._load(nodes, edges)
        self._notify()

    def clear(self) -> None:
        self.load((), ())

    def _load(self, nodes: Iterable[StoryNode], edges: Iterable[EdgeDef]) -> None:
        for node in nodes:
            self._nodes[node.id] = node
        for edge in edges:
            self._edges[edge.id] = edge
