import pytest

from storyflow.domain.defs import ChoiceNodeDef, EdgeDef, SceneNodeDef
from storyflow.services.errors import GraphEditError
from storyflow.services.graph_store import StoryGraph
from tests.helpers.story_builders import link, make_choice, make_scene


def _make_graph() -> StoryGraph:
    return StoryGraph(
        [
            make_scene("S1", 5),
            make_choice("C1"),
            make_choice("C2"),
            make_scene("S2"),
            make_scene("S3"),
        ],
        link("S1", "C1", "S2") + link("S1", "C2", "S3"),
        start_node_id="S1",
    )


def test_queries_follow_edges() -> None:
    graph = _make_graph()

    assert [choice.id for choice in graph.get_outgoing_choices("S1")] == ["C1", "C2"]
    assert graph.get_outgoing_choices("S2") == []
    assert graph.get_edge_target("C2") == "S3"
    assert graph.get_incoming_source("C1") == "S1"
    assert graph.get_incoming_source("S3") == "C2"
    assert graph.get_incoming_source("S1") is None
    assert graph.get_incoming_source("missing") is None
    assert graph.get_edge_target("S3") is None
    assert graph.get_node(None) is None
    assert graph.get_node("missing") is None


def test_outgoing_choices_skip_scene_targets_and_duplicates() -> None:
    graph = _make_graph()
    graph.add_edge("S1", "S2")
    graph.add_edge("S2", "C1")

    assert [choice.id for choice in graph.get_outgoing_choices("S1")] == ["C1", "C2"]


def test_add_scene_and_choice_generate_ids() -> None:
    graph = StoryGraph()

    scene = graph.add_scene("Hall", 3)
    choice = graph.add_choice("Open door", {"keys": -1})

    assert scene.id.startswith("scene_")
    assert choice.id.startswith("choice_")
    assert isinstance(graph.get_node(scene.id), SceneNodeDef)
    assert isinstance(graph.get_node(choice.id), ChoiceNodeDef)
    assert graph.get_node(choice.id).effects == {"keys": -1}


def test_add_edge_rejects_invalid_connections() -> None:
    graph = _make_graph()

    with pytest.raises(GraphEditError):
        graph.add_edge("S1", "missing")
    with pytest.raises(GraphEditError):
        graph.add_edge("S2", "S2")
    with pytest.raises(GraphEditError):
        graph.add_edge("S1", "C1")
    with pytest.raises(GraphEditError):
        graph.add_node(make_scene("S2"))


def test_update_node_keeps_kind() -> None:
    graph = _make_graph()

    graph.update_node(make_scene("S2", 9))

    assert graph.get_node("S2").duration_sec == 9
    with pytest.raises(GraphEditError):
        graph.update_node(make_choice("S2"))
    with pytest.raises(GraphEditError):
        graph.update_node(make_scene("missing"))


def test_remove_scene_cascades_to_orphaned_choices() -> None:
    graph = _make_graph()

    removed = graph.remove_node("S2")

    assert removed == ["S2", "C1"]
    assert graph.get_node("C1") is None
    assert [edge.id for edge in graph.edges()] == ["e_S1_C2", "e_C2_S3"]


def test_remove_choice_removes_its_edges_only() -> None:
    graph = _make_graph()

    assert graph.remove_node("C2") == ["C2"]
    assert graph.get_node("S3") is not None
    assert graph.incoming_edges("S3") == []


def test_start_node_cannot_be_removed() -> None:
    graph = _make_graph()

    with pytest.raises(GraphEditError):
        graph.remove_node("S1")
    with pytest.raises(GraphEditError):
        graph.remove_node("missing")


def test_listeners_are_notified_of_mutations() -> None:
    graph = _make_graph()
    calls = []
    unsubscribe = graph.subscribe(lambda: calls.append("changed"))

    graph.remove_edge("e_S1_C1")
    graph.load([make_scene("S1")], [])
    unsubscribe()
    graph.clear()

    assert calls == ["changed", "changed"]
    assert graph.nodes() == []
    with pytest.raises(GraphEditError):
        graph.remove_edge("e_S1_C1")


def test_scene_and_choice_listing() -> None:
    graph = _make_graph()

    assert [scene.id for scene in graph.scenes()] == ["S1", "S2", "S3"]
    assert [choice.id for choice in graph.choices()] == ["C1", "C2"]
    assert graph.outgoing_edges("S1") == [
        EdgeDef(id="e_S1_C1", source="S1", target="C1"),
        EdgeDef(id="e_S1_C2", source="S1", target="C2"),
    ]
