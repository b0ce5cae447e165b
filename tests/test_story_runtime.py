from __future__ import annotations

import asyncio

from storyflow.core.scheduler import AsyncioScheduler
from storyflow.domain.defs import Condition
from storyflow.services.graph_store import StoryGraph
from storyflow.services.story_runtime import RuntimeSnapshot, StoryRuntime
from storyflow.services.variable_store import VariableStore
from tests.helpers.story_builders import (
    link,
    make_choice,
    make_runtime,
    make_scene,
    make_variables,
)

_NEEDS_ENERGY = Condition(var_name="energy", op="gte", value=3)


def _energy(store: VariableStore) -> float:
    variable = store.get("energy")
    assert variable is not None
    return variable.value


def test_immediate_scene_without_choices_ends_game() -> None:
    runtime, _, _, scheduler = make_runtime([make_scene("S0")], [], start_node_id="S0")

    runtime.start("S0")
    assert runtime.mode == "play"
    assert runtime.current_node_id == "S0"
    assert runtime.is_game_over is False

    scheduler.run_pending()

    assert runtime.is_game_over is True
    assert runtime.current_node_id == "S0"


def test_default_choice_into_locked_scene_pays_effects_and_stays() -> None:
    runtime, _, store, scheduler = make_runtime(
        [
            make_scene("S1", 5, default_choice_id="C1"),
            make_choice("C1", energy=1),
            make_scene("S2", 5, conditions=[_NEEDS_ENERGY]),
        ],
        link("S1", "C1", "S2"),
        make_variables(energy=1),
    )

    runtime.start("S1")
    scheduler.advance(5000)

    assert runtime.current_node_id == "S1"
    assert runtime.is_game_over is False
    assert runtime.last_choice_id == "C1"
    assert _energy(store) == 2
    assert runtime.remaining_ms is None
    assert scheduler.pending_count == 0


def test_resolve_choice_in_edit_mode_changes_nothing() -> None:
    runtime, _, store, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1", energy=4), make_scene("S2")],
        link("S1", "C1", "S2"),
        make_variables(energy=1),
    )
    before = store.variables

    result = runtime.resolve_choice("C1")

    assert result.status == "ignored"
    assert runtime.mode == "edit"
    assert runtime.current_node_id is None
    assert store.variables is before


def test_second_resolve_of_stale_choice_is_ignored() -> None:
    runtime, _, store, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1", energy=1), make_scene("S2", 5)],
        link("S1", "C1", "S2"),
        make_variables(energy=1),
    )
    runtime.start("S1")

    first = runtime.resolve_choice("C1")
    second = runtime.resolve_choice("C1")

    assert first.moved
    assert first.node_id == "S2"
    assert second.status == "ignored"
    assert runtime.current_node_id == "S2"
    assert _energy(store) == 2


def test_stop_cancels_pending_timers() -> None:
    runtime, _, _, scheduler = make_runtime(
        [make_scene("S1", 5, default_choice_id="C1"), make_choice("C1"), make_scene("S2")],
        link("S1", "C1", "S2"),
    )
    runtime.start("S1")
    scheduler.advance(3000)
    assert runtime.remaining_ms == 2000

    runtime.stop()

    assert scheduler.advance(10_000) == 0
    assert runtime.mode == "edit"
    assert runtime.current_node_id is None
    assert runtime.remaining_ms is None


def test_ticks_publish_remaining_time_until_expiry() -> None:
    runtime, _, _, scheduler = make_runtime([make_scene("S1", 1)], [])
    snapshots: list[RuntimeSnapshot] = []
    runtime.subscribe(snapshots.append)

    runtime.start("S1")
    scheduler.advance(1000)

    remaining = [snapshot.remaining_ms for snapshot in snapshots[:10]]
    assert remaining == [1000, 900, 800, 700, 600, 500, 400, 300, 200, 100]
    assert snapshots[-1].is_game_over is True
    assert snapshots[-1].remaining_ms is None
    assert len(snapshots) == 11


def test_expired_scene_follows_unlocked_default_choice() -> None:
    runtime, _, store, scheduler = make_runtime(
        [
            make_scene("S1", 2, default_choice_id="C1"),
            make_choice("C1", energy=3),
            make_scene("S2", conditions=[_NEEDS_ENERGY]),
        ],
        link("S1", "C1", "S2"),
        make_variables(energy=0),
    )
    runtime.start("S1")

    scheduler.advance(1999)
    assert runtime.current_node_id == "S1"
    scheduler.advance(1)

    assert runtime.current_node_id == "S2"
    assert runtime.is_game_over is True
    assert _energy(store) == 3


def test_expired_scene_without_default_waits_for_player() -> None:
    runtime, _, _, scheduler = make_runtime(
        [make_scene("S1", 1), make_choice("C1"), make_scene("S2", 3)],
        link("S1", "C1", "S2"),
    )
    runtime.start("S1")

    scheduler.advance(5000)

    assert runtime.current_node_id == "S1"
    assert runtime.is_game_over is False
    assert runtime.remaining_ms is None
    assert runtime.resolve_choice("C1").moved
    assert runtime.remaining_ms == 3000


def test_default_choice_not_offered_by_scene_is_not_taken() -> None:
    runtime, _, _, scheduler = make_runtime(
        [make_scene("S1", 1, default_choice_id="C9"), make_choice("C9"), make_scene("S2")],
        link("C9", "S2"),
    )
    runtime.start("S1")

    scheduler.advance(1000)

    assert runtime.is_game_over is True
    assert runtime.current_node_id == "S1"
    assert runtime.last_choice_id is None


def test_player_choice_cancels_previous_scene_timer() -> None:
    runtime, _, _, scheduler = make_runtime(
        [
            make_scene("S1", 5, default_choice_id="C1"),
            make_choice("C1"),
            make_choice("C2"),
            make_scene("S2", 10),
            make_scene("S3", 10),
        ],
        link("S1", "C1", "S2") + link("S1", "C2", "S3"),
    )
    runtime.start("S1")
    scheduler.advance(1000)

    assert runtime.resolve_choice("C2").moved
    scheduler.advance(4000)

    assert runtime.current_node_id == "S3"
    assert runtime.last_choice_id == "C2"
    assert runtime.remaining_ms == 6000


def test_manual_choice_into_locked_scene_reports_locked() -> None:
    runtime, _, store, _ = make_runtime(
        [
            make_scene("S1", 5),
            make_choice("C1", energy=-1),
            make_scene("S2", conditions=[_NEEDS_ENERGY]),
        ],
        link("S1", "C1", "S2"),
        make_variables(energy=2),
    )
    runtime.start("S1")

    result = runtime.resolve_choice("C1")

    assert result.status == "locked"
    assert result.node_id == "S1"
    assert runtime.current_node_id == "S1"
    assert _energy(store) == 1
    assert runtime.remaining_ms == 5000


def test_choice_not_offered_by_current_scene_is_ignored() -> None:
    runtime, _, store, _ = make_runtime(
        [
            make_scene("S1", 5),
            make_choice("C1"),
            make_scene("S2", 5),
            make_choice("C2", energy=5),
            make_scene("S3"),
        ],
        link("S1", "C1", "S2") + link("S2", "C2", "S3"),
        make_variables(energy=0),
    )
    runtime.start("S1")

    assert runtime.resolve_choice("C2").status == "ignored"
    assert runtime.resolve_choice("S2").status == "ignored"
    assert runtime.resolve_choice("missing").status == "ignored"
    assert runtime.current_node_id == "S1"
    assert _energy(store) == 0


def test_choice_without_scene_target_is_ignored() -> None:
    runtime, _, store, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1", energy=1)],
        link("S1", "C1"),
        make_variables(energy=0),
    )
    runtime.start("S1")

    assert runtime.resolve_choice("C1").status == "ignored"
    assert _energy(store) == 0


def test_start_on_missing_or_choice_node_ends_game() -> None:
    runtime, _, _, _ = make_runtime([make_scene("S1"), make_choice("C1")], link("S1", "C1"))

    runtime.start("nowhere")
    assert runtime.mode == "play"
    assert runtime.is_game_over is True
    assert runtime.current_node_id is None

    runtime.start("C1")
    assert runtime.is_game_over is True
    assert runtime.current_node_id is None


def test_start_restores_initial_variable_values() -> None:
    runtime, _, store, _ = make_runtime([make_scene("S1", 5)], [], make_variables(energy=4))
    store.set_value("energy", 9)

    runtime.start("S1")

    assert _energy(store) == 4


def test_reset_replays_from_start() -> None:
    runtime, _, store, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1", energy=2), make_scene("S2", 5)],
        link("S1", "C1", "S2"),
        make_variables(energy=1),
    )
    runtime.start("S1")
    runtime.resolve_choice("C1")
    assert _energy(store) == 3

    runtime.reset("S1")

    assert runtime.mode == "play"
    assert runtime.current_node_id == "S1"
    assert runtime.last_choice_id is None
    assert _energy(store) == 1


def test_removing_current_scene_ends_game() -> None:
    runtime, graph, _, scheduler = make_runtime(
        [make_scene("S1", 5), make_choice("C1"), make_scene("S2", 5)],
        link("S1", "C1", "S2"),
    )
    runtime.start("S1")
    runtime.resolve_choice("C1")

    graph.remove_node("S2")

    assert runtime.is_game_over is True
    assert scheduler.advance(10_000) == 0


def test_unrelated_graph_edit_keeps_playing() -> None:
    runtime, graph, _, _ = make_runtime([make_scene("S1", 5)], [])
    runtime.start("S1")

    graph.add_scene("Side room")

    assert runtime.is_game_over is False
    assert runtime.current_node_id == "S1"


def test_available_choices_report_target_lock_state() -> None:
    runtime, _, _, _ = make_runtime(
        [
            make_scene("S1", 5),
            make_choice("C1"),
            make_choice("C2"),
            make_scene("S2", conditions=[_NEEDS_ENERGY]),
            make_scene("S3"),
        ],
        link("S1", "C1", "S2") + link("S1", "C2", "S3"),
        make_variables(energy=0),
    )
    assert runtime.available_choices() == []

    runtime.start("S1")
    views = runtime.available_choices()

    assert [view.choice_id for view in views] == ["C1", "C2"]
    assert [view.target_unlocked for view in views] == [False, True]
    assert runtime.is_choice_available("C2") is True
    assert runtime.is_choice_available("S2") is False


def test_immediate_scenes_chain_through_default_choices() -> None:
    runtime, _, _, scheduler = make_runtime(
        [make_scene("S0", default_choice_id="C1"), make_choice("C1"), make_scene("S1")],
        link("S0", "C1", "S1"),
        start_node_id="S0",
    )
    runtime.start("S0")

    scheduler.run_pending()

    assert runtime.current_node_id == "S1"
    assert runtime.last_choice_id == "C1"
    assert runtime.is_game_over is True


def test_snapshot_and_unsubscribe() -> None:
    runtime, _, _, _ = make_runtime(
        [make_scene("S1", 2, video_segment_id="intro")], [], make_variables(energy=1)
    )
    received: list[RuntimeSnapshot] = []
    unsubscribe = runtime.subscribe(received.append)

    runtime.start("S1")
    snapshot = runtime.snapshot()
    unsubscribe()
    runtime.stop()

    assert len(received) == 1
    assert received[0] == snapshot
    assert snapshot.video_segment_id == "intro"
    assert snapshot.remaining_ms == 2000
    assert [variable.name for variable in snapshot.variables] == ["energy"]


def test_dispose_detaches_from_graph() -> None:
    runtime, graph, _, scheduler = make_runtime([make_scene("S1", 5), make_scene("S2", 5)], [])
    runtime.start("S1")

    runtime.dispose()
    graph.remove_node("S2")

    assert runtime.mode == "edit"
    assert runtime.is_game_over is False
    assert scheduler.pending_count == 0


def test_runtime_on_asyncio_loop_follows_default_choice() -> None:
    async def play() -> StoryRuntime:
        graph = StoryGraph(
            [
                make_scene("S1", 0.05, default_choice_id="C1"),
                make_choice("C1", energy=1),
                make_scene("S2"),
            ],
            link("S1", "C1", "S2"),
            start_node_id="S1",
        )
        store = VariableStore(make_variables(energy=0))
        runtime = StoryRuntime(graph, store, AsyncioScheduler(), tick_interval_ms=10)
        runtime.init()
        runtime.start("S1")
        await asyncio.sleep(0.3)
        return runtime

    runtime = asyncio.run(play())

    assert runtime.current_node_id == "S2"
    assert runtime.is_game_over is True


def _act_on_last_tick(runtime: StoryRuntime, action) -> None:
    def listener(snapshot: RuntimeSnapshot) -> None:
        if snapshot.current_node_id == "S1" and snapshot.remaining_ms == 100:
            action()

    runtime.subscribe(listener)


def test_choice_taken_from_tick_listener_leaves_one_timer_pair() -> None:
    runtime, _, _, scheduler = make_runtime(
        [make_scene("S1", 5), make_choice("C1"), make_scene("S2", 5)],
        link("S1", "C1", "S2"),
    )
    _act_on_last_tick(runtime, lambda: runtime.resolve_choice("C1"))
    runtime.start("S1")

    scheduler.advance(4900)

    assert runtime.current_node_id == "S2"
    assert scheduler.pending_count == 2
    runtime.stop()
    assert scheduler.pending_count == 0


def test_stop_from_tick_listener_cancels_everything() -> None:
    runtime, _, _, scheduler = make_runtime([make_scene("S1", 5)], [])
    _act_on_last_tick(runtime, runtime.stop)
    runtime.start("S1")

    scheduler.advance(4900)

    assert runtime.mode == "edit"
    assert scheduler.pending_count == 0
    assert scheduler.advance(10_000) == 0


def test_failing_listener_does_not_escape_actions() -> None:
    runtime, _, _, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1"), make_scene("S2", 5)],
        link("S1", "C1", "S2"),
    )
    received: list[RuntimeSnapshot] = []

    def broken(snapshot: RuntimeSnapshot) -> None:
        raise RuntimeError("observer bug")

    runtime.subscribe(broken)
    runtime.subscribe(received.append)

    runtime.start("S1")
    result = runtime.resolve_choice("C1")

    assert result.moved
    assert [snapshot.current_node_id for snapshot in received] == ["S1", "S2"]


def test_reentering_same_scene_bumps_entry_id() -> None:
    runtime, _, _, _ = make_runtime(
        [make_scene("S1", 5), make_choice("C1", energy=1)],
        link("S1", "C1", "S1"),
        make_variables(energy=0),
    )
    runtime.start("S1")
    first = runtime.snapshot().entry_id

    assert runtime.resolve_choice("C1").moved
    assert runtime.resolve_choice("C1").moved

    assert runtime.current_node_id == "S1"
    assert runtime.snapshot().entry_id == first + 2


def test_availability_follows_incoming_edge_source() -> None:
    runtime, _, _, _ = make_runtime(
        [
            make_scene("S1", 5),
            make_choice("C1"),
            make_choice("C_loose"),
            make_scene("S2", 5),
        ],
        link("S1", "C1", "S2") + link("C_loose", "S2"),
    )
    runtime.start("S1")

    assert runtime.is_choice_available("C1") is True
    assert runtime.is_choice_available("C_loose") is False
    assert runtime.resolve_choice("C_loose").status == "ignored"
