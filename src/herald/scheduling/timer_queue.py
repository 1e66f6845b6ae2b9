# src/herald/scheduling/timer_queue.py

from __future__ import annotations

"""
Timer queue.

Thin layer over the event loop's timer facility (loop.call_later):
- arms one-shot (or interval) delayed callbacks and hands back a handle,
- cancels them best-effort,
- turns absolute timestamps into millisecond delays.

It knows nothing about tasks; the scheduler builds recurrence on top of it.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from enum import StrEnum
from typing import Any

from ..errors import ConfigurationError
from .task_models import Timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_ONE_MS = timedelta(milliseconds=1)


class TimerState(StrEnum):
    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"


@dataclass(slots=True, eq=False)
class TimerHandle:
    """
    Opaque handle for one armed timer.

    The handle lock decides the race between cancel() and a firing timer:
    whichever takes it first wins.
    """

    callback: Callable[[], Any]
    delay_ms: int
    interval_ms: int | None = None
    state: TimerState = TimerState.PENDING
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def pending(self) -> bool:
        return self.state is TimerState.PENDING

    @property
    def repeating(self) -> bool:
        return self.interval_ms is not None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TimerQueue:
    """
    Arms delayed callbacks on a single asyncio loop.

    add()/repeat()/cancel() may be called from any thread; callbacks always run
    on the loop thread. If no loop is passed, the running loop is picked up on
    first use.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._loop = loop
        self.tz = tz
        self._clock = clock or _utcnow

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """
        The loop timers run on.

        Raises ConfigurationError when no loop was given and none is running.
        """
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                raise ConfigurationError(
                    "TimerQueue has no event loop: pass one, or use it from a running loop"
                ) from None
        return self._loop

    def now(self) -> datetime:
        return self._clock()

    # ---- arming ----

    def add(self, callback: Callable[[], Any], delay_ms: float) -> TimerHandle:
        """Fire callback once after about delay_ms milliseconds."""
        handle = TimerHandle(callback=callback, delay_ms=max(0, int(delay_ms)))
        self._arm(handle, handle.delay_ms)
        return handle

    def repeat(self, callback: Callable[[], Any], interval_ms: float) -> TimerHandle:
        """Fire callback every interval_ms milliseconds until cancelled."""
        interval = int(interval_ms)
        if interval <= 0:
            raise ConfigurationError(f"repeat interval must be positive, got {interval_ms!r}")
        handle = TimerHandle(callback=callback, delay_ms=interval, interval_ms=interval)
        self._arm(handle, interval)
        return handle

    def add_for_time(self, callback: Callable[[], Any], target: Timestamp) -> TimerHandle:
        return self.add(callback, self.compute_delay(target))

    def repeat_from_time(self, callback: Callable[[], Any], target: Timestamp) -> TimerHandle:
        """Repeat with the interval between now and target."""
        return self.repeat(callback, self.compute_delay(target))

    def cancel(self, handle: TimerHandle) -> bool:
        """
        Prevent a pending invocation.

        Returns False if the timer already fired (one-shot) or was cancelled before.
        """
        with handle._lock:
            if handle.state is not TimerState.PENDING:
                return False
            handle.state = TimerState.CANCELLED
            timer = handle._timer
            handle._timer = None

        if timer is not None:
            self._call_on_loop(timer.cancel)
        return True

    # ---- delays ----

    def compute_delay(self, target: Timestamp, from_ts: Timestamp | None = None) -> int:
        """
        Milliseconds from from_ts (default: now) until target, never negative.

        Raises InvalidTimestamp if either value cannot be read as a timestamp.
        """
        end = parse_timestamp(target, self.tz)
        start = self.now() if from_ts is None else parse_timestamp(from_ts, self.tz)
        delta = end - start
        if delta <= timedelta(0):
            return 0
        return delta // _ONE_MS

    def in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    # ---- internals ----

    def _call_on_loop(self, fn: Callable[[], Any]) -> None:
        if self.in_loop_thread():
            fn()
            return
        try:
            self.loop.call_soon_threadsafe(fn)
        except RuntimeError:
            # Loop already closed: nothing left to cancel.
            logger.debug("Timer loop closed; dropping loop call.", exc_info=True)

    def _arm(self, handle: TimerHandle, delay_ms: int) -> None:
        if self.in_loop_thread():
            self._arm_now(handle, delay_ms)
        else:
            self.loop.call_soon_threadsafe(self._arm_now, handle, delay_ms)

    def _arm_now(self, handle: TimerHandle, delay_ms: int) -> None:
        with handle._lock:
            if handle.state is not TimerState.PENDING:
                return
            handle._timer = self.loop.call_later(delay_ms / 1000.0, self._fire, handle)

    def _fire(self, handle: TimerHandle) -> None:
        with handle._lock:
            if handle.state is not TimerState.PENDING:
                return
            if handle.interval_ms is None:
                handle.state = TimerState.FIRED
                handle._timer = None
            else:
                handle._timer = self.loop.call_later(handle.interval_ms / 1000.0, self._fire, handle)

        try:
            handle.callback()
        except Exception:
            logger.exception("Timer callback failed (handle=%r)", handle)
