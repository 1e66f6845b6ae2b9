# tests/test_timer_queue.py

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime, timedelta

import pytest

from herald.errors import ConfigurationError, InvalidTimestamp
from herald.scheduling.timer_queue import TimerQueue, TimerState

from .fakes import ManualClock

NOW = datetime(2024, 1, 1, 0, 0, 30, tzinfo=UTC)


@pytest.fixture()
def fixed_queue() -> TimerQueue:
    return TimerQueue(clock=ManualClock(NOW))


@pytest.mark.parametrize(
    "target",
    [
        NOW,
        NOW - timedelta(milliseconds=1),
        "2023-12-31T23:59:59Z",
        datetime(2020, 5, 1),
    ],
)
def test_compute_delay_is_zero_for_past_targets(fixed_queue: TimerQueue, target: object) -> None:
    assert fixed_queue.compute_delay(target) == 0


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        ("2024-01-01T00:01:00Z", 30000),
        (datetime(2024, 1, 1, 0, 1), 30000),  # naive -> queue timezone (UTC)
        (1704067260, 30000),  # epoch seconds for 2024-01-01T00:01:00Z
        (NOW + timedelta(milliseconds=1), 1),
        (NOW + timedelta(days=1), 86_400_000),
    ],
)
def test_compute_delay_is_exact_for_future_targets(fixed_queue: TimerQueue, target: object, expected: int) -> None:
    assert fixed_queue.compute_delay(target) == expected


def test_compute_delay_with_explicit_start(fixed_queue: TimerQueue) -> None:
    assert fixed_queue.compute_delay("2024-01-01T00:01:00Z", "2024-01-01T00:00:00Z") == 60000
    assert fixed_queue.compute_delay("2024-01-01T00:00:00Z", "2024-01-01T00:01:00Z") == 0


@pytest.mark.parametrize("bad", ["banana", "", None, True, object(), []])
def test_compute_delay_rejects_unparseable_target(fixed_queue: TimerQueue, bad: object) -> None:
    with pytest.raises(InvalidTimestamp):
        fixed_queue.compute_delay(bad)


@pytest.mark.asyncio
async def test_add_fires_once() -> None:
    queue = TimerQueue()
    fired = asyncio.Event()
    calls: list[int] = []

    def cb() -> None:
        calls.append(1)
        fired.set()

    handle = queue.add(cb, 10)
    await asyncio.wait_for(fired.wait(), timeout=1.0)
    await asyncio.sleep(0.03)

    assert calls == [1]
    assert handle.state is TimerState.FIRED
    assert queue.cancel(handle) is False


@pytest.mark.asyncio
async def test_cancel_prevents_pending_invocation() -> None:
    queue = TimerQueue()
    calls: list[int] = []

    handle = queue.add(lambda: calls.append(1), 20)
    assert queue.cancel(handle) is True
    await asyncio.sleep(0.06)

    assert calls == []
    assert handle.state is TimerState.CANCELLED
    assert queue.cancel(handle) is False


@pytest.mark.asyncio
async def test_add_for_time_in_the_past_fires_immediately() -> None:
    queue = TimerQueue()
    fired = asyncio.Event()

    handle = queue.add_for_time(fired.set, datetime(2000, 1, 1, tzinfo=UTC))
    await asyncio.wait_for(fired.wait(), timeout=1.0)

    assert handle.delay_ms == 0


@pytest.mark.asyncio
async def test_repeat_until_cancelled() -> None:
    queue = TimerQueue()
    calls: list[int] = []

    handle = queue.repeat(lambda: calls.append(1), 10)
    await asyncio.sleep(0.1)
    assert queue.cancel(handle) is True
    seen = len(calls)
    await asyncio.sleep(0.05)

    assert seen >= 2
    assert len(calls) == seen
    assert handle.repeating


@pytest.mark.asyncio
async def test_repeat_keeps_going_after_callback_error() -> None:
    queue = TimerQueue()
    calls: list[int] = []

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")

    handle = queue.repeat(flaky, 10)
    await asyncio.sleep(0.1)
    queue.cancel(handle)

    assert len(calls) >= 2


def test_repeat_requires_positive_interval(fixed_queue: TimerQueue) -> None:
    with pytest.raises(ConfigurationError):
        fixed_queue.repeat(lambda: None, 0)
    with pytest.raises(ConfigurationError):
        fixed_queue.repeat_from_time(lambda: None, "2020-01-01T00:00:00Z")


@pytest.mark.asyncio
async def test_add_from_another_thread_fires_on_loop_thread() -> None:
    queue = TimerQueue(asyncio.get_running_loop())
    loop_thread = threading.get_ident()
    fired = asyncio.Event()
    seen: list[int] = []

    def cb() -> None:
        seen.append(threading.get_ident())
        fired.set()

    worker = threading.Thread(target=lambda: queue.add(cb, 0))
    worker.start()
    worker.join()
    await asyncio.wait_for(fired.wait(), timeout=1.0)

    assert seen == [loop_thread]


@pytest.mark.asyncio
async def test_cancel_from_another_thread() -> None:
    queue = TimerQueue(asyncio.get_running_loop())
    calls: list[int] = []
    handle = queue.add(lambda: calls.append(1), 30)

    results: list[bool] = []
    worker = threading.Thread(target=lambda: results.append(queue.cancel(handle)))
    worker.start()
    worker.join()
    await asyncio.sleep(0.08)

    assert results == [True]
    assert calls == []


def test_arming_without_event_loop_is_a_configuration_error(fixed_queue: TimerQueue) -> None:
    with pytest.raises(ConfigurationError):
        fixed_queue.add(lambda: None, 10)
    with pytest.raises(ConfigurationError):
        _ = fixed_queue.loop
