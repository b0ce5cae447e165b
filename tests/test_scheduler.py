import asyncio

import pytest

from storyflow.core.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_fires_in_due_order() -> None:
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(200, lambda: fired.append("late"))
    scheduler.call_later(100, lambda: fired.append("early"))
    scheduler.call_soon(lambda: fired.append("soon"))

    assert scheduler.advance(150) == 2
    assert fired == ["soon", "early"]
    assert scheduler.now_ms() == 150
    assert scheduler.pending_count == 1


def test_manual_scheduler_same_due_time_keeps_insertion_order() -> None:
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(100, lambda: fired.append(1))
    scheduler.call_later(100, lambda: fired.append(2))

    scheduler.advance(100)

    assert fired == [1, 2]


def test_cancelled_timers_do_not_fire() -> None:
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_later(50, lambda: fired.append("x"))
    handle.cancel()

    assert scheduler.advance(100) == 0
    assert fired == []
    assert scheduler.pending_count == 0


def test_callbacks_scheduled_while_advancing_fire_within_window() -> None:
    scheduler = ManualScheduler()
    fired = []

    def first() -> None:
        fired.append(scheduler.now_ms())
        scheduler.call_later(30, lambda: fired.append(scheduler.now_ms()))

    scheduler.call_later(10, first)

    assert scheduler.advance(100) == 2
    assert fired == [10, 40]
    assert scheduler.now_ms() == 100


def test_run_pending_does_not_move_clock() -> None:
    scheduler = ManualScheduler(start_ms=500)
    fired = []
    scheduler.call_soon(lambda: fired.append("now"))
    scheduler.call_later(1, lambda: fired.append("later"))

    assert scheduler.run_pending() == 1
    assert fired == ["now"]
    assert scheduler.now_ms() == 500


def test_advance_rejects_negative_delay() -> None:
    with pytest.raises(ValueError):
        ManualScheduler().advance(-1)


def test_asyncio_scheduler_uses_running_loop() -> None:
    async def run() -> list[str]:
        scheduler = AsyncioScheduler()
        fired: list[str] = []
        start = scheduler.now_ms()
        scheduler.call_later(20, lambda: fired.append("later"))
        scheduler.call_soon(lambda: fired.append("soon"))
        cancelled = scheduler.call_later(10, lambda: fired.append("cancelled"))
        cancelled.cancel()
        await asyncio.sleep(0.1)
        assert scheduler.now_ms() - start >= 20
        return fired

    assert asyncio.run(run()) == ["soon", "later"]
