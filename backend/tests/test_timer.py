import asyncio

import pytest

from orchestrator.session.timer import SessionTimer, format_elapsed


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_format_elapsed():
    assert format_elapsed(0) == "00:00:00"
    assert format_elapsed(3725) == "01:02:05"
    assert format_elapsed(-4) == "00:00:00"


@pytest.mark.asyncio
async def test_elapsed_freezes_at_stop():
    clock = FakeClock()
    timer = SessionTimer(duration_minutes=1, clock=clock)

    assert timer.elapsed_seconds() == 0.0
    timer.start()
    clock.now += 42
    assert timer.elapsed_seconds() == 42
    assert timer.remaining_seconds() == 18

    timer.stop()
    clock.now += 100
    assert timer.elapsed_seconds() == 42
    assert timer.running is False


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent():
    clock = FakeClock()
    timer = SessionTimer(clock=clock)

    timer.start()
    clock.now += 5
    timer.start()
    timer.stop()
    clock.now += 5
    timer.stop()

    assert timer.elapsed_seconds() == 5
    assert timer.remaining_seconds() is None


@pytest.mark.asyncio
async def test_tick_callback_fires_while_running():
    ticks = []
    timer = SessionTimer(on_tick=ticks.append, tick_sec=0.01)

    timer.start()
    await asyncio.sleep(0.05)
    timer.stop()
    count = len(ticks)
    await asyncio.sleep(0.03)

    assert count >= 1
    assert len(ticks) == count


def test_snapshot_before_start():
    snap = SessionTimer(duration_minutes=2).snapshot()

    assert snap == {
        "running": False,
        "elapsed_seconds": 0,
        "elapsed_display": "00:00:00",
        "remaining_seconds": 120,
    }
