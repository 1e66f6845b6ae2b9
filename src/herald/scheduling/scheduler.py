# src/herald/scheduling/scheduler.py

from __future__ import annotations

"""
Recurring task scheduler.

Owns the registry of named tasks and keeps one armed timer per task:
- schedule() registers (or replaces) a task and arms its first cycle,
- every fire re-arms the next cycle *before* running the callback (unless once=True),
- unschedule() drops the registry entry; a timer already armed for it fires as a no-op.

Timers carry (name, generation, cycle) values, never the task object, so a timer
armed for a replaced or removed definition finds nothing to do when it fires.
Cycle k targets begin_at + k periods, so calendar periods do not drift.
"""

import asyncio
import inspect
import itertools
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from concurrent.futures import Future as ConcurrentFuture
from dataclasses import replace
from datetime import UTC, datetime, tzinfo
from functools import partial
from typing import Any

from ..errors import ConfigurationError, MissingOption
from .task_models import (
    Frequency,
    ScheduledTask,
    StartOf,
    TaskOptions,
    TaskState,
    next_fire_after,
    parse_timestamp,
)
from .timer_queue import TimerQueue

logger = logging.getLogger(__name__)

_RunFuture = asyncio.Future[Any] | ConcurrentFuture[Any]


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class Scheduler:
    """
    Named recurring tasks on top of a TimerQueue.

    default_context is passed to callbacks of tasks registered without an
    explicit context. It is resolved at schedule() time: set_context() only
    affects tasks registered afterwards.
    """

    def __init__(
        self,
        default_context: Any = None,
        *,
        queue: TimerQueue | None = None,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.queue = queue or TimerQueue(tz=tz, clock=clock)
        self.tz = tz
        self._clock = clock or self.queue.now
        self._default_context = default_context

        self._lock = threading.RLock()
        self._tasks: dict[str, ScheduledTask] = {}
        self._states: dict[str, TaskState] = {}
        self._cycles: dict[str, int] = {}
        self._inflight: dict[str, _RunFuture] = {}
        self._generations = itertools.count(1)

    # ---- default context ----

    @property
    def default_context(self) -> Any:
        return self._default_context

    def set_context(self, context: Any) -> Scheduler:
        self._default_context = context
        return self

    # ---- registry ----

    def schedule(self, options: TaskOptions | Mapping[str, Any] | None = None, /, **kwargs: Any) -> Scheduler:
        """
        Register a task and arm its first cycle.

        options may be a TaskOptions, a plain mapping, or omitted in favour of
        keyword arguments. Re-using a name replaces the previous definition.
        The registry only changes once the first timer is armed: if arming
        fails (e.g. ConfigurationError for a queue without a loop), a previous
        definition under the same name stays in place.
        """
        if isinstance(options, TaskOptions):
            opts = replace(options, **kwargs) if kwargs else options
        else:
            opts = TaskOptions.from_mapping({**dict(options or {}), **kwargs})

        with self._lock:
            task = self._build_task(opts)
            self._arm(task, 1)
            replaced = task.name in self._tasks
            self._tasks[task.name] = task
            self._cycles[task.name] = 1
            self._states[task.name] = TaskState.ARMED

        logger.info(
            "Task %r %s (%s, begin_at=%s).",
            task.name,
            "replaced" if replaced else "scheduled",
            task.describe(),
            task.begin_at.isoformat(),
        )

        if task.immediate:
            self._invoke(task)

        return self

    def unschedule(self, name: str) -> Scheduler:
        """
        Stop future cycles of a task.

        A timer that is already armed is not cancelled; when it fires it finds
        no definition and does nothing.
        """
        with self._lock:
            removed = self._tasks.pop(name, None)
            self._cycles.pop(name, None)
            self._states.pop(name, None)

        if removed is not None:
            logger.info("Task %r unscheduled.", name)
        return self

    def get_task(self, name: str) -> ScheduledTask | None:
        with self._lock:
            return self._tasks.get(name)

    def tasks(self) -> list[ScheduledTask]:
        with self._lock:
            return sorted(self._tasks.values(), key=lambda t: t.name)

    def state_of(self, name: str) -> TaskState | None:
        """ARMED / FIRED / TERMINAL for registered tasks, None otherwise."""
        with self._lock:
            return self._states.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    # ---- fire times ----

    def get_next_fire_time(self, name: str) -> datetime:
        """
        begin_at + one frequency period, moved to the start of start_of if set.

        Always computed from the registered begin_at, so repeated calls return
        the same instant.
        """
        with self._lock:
            task = self._tasks.get(name)
        if task is None:
            raise KeyError(name)
        return self._target(task, 1)

    def upcoming(self, name: str) -> datetime | None:
        """Target of the cycle currently armed for name (None if not scheduled)."""
        with self._lock:
            task = self._tasks.get(name)
            cycle = self._cycles.get(name)
            if task is None or cycle is None or self._states.get(name) is not TaskState.ARMED:
                return None
            return self._target(task, cycle)

    # ---- internals ----

    def _build_task(self, opts: TaskOptions) -> ScheduledTask:
        name = str(opts.name).strip() if opts.name is not None else ""
        if not name:
            raise MissingOption("name")
        if opts.frequency is None or opts.frequency == "":
            raise MissingOption("frequency")
        if opts.callback is None:
            raise MissingOption("callback")
        if not callable(opts.callback):
            raise ConfigurationError(f"callback for task {name!r} is not callable")

        frequency = Frequency.parse(opts.frequency)
        unit = StartOf.parse(opts.start_of) if opts.start_of is not None else None

        begin_at = self._clock() if opts.begin_at is None else parse_timestamp(opts.begin_at, self.tz)
        context = self._default_context if opts.context is None else opts.context

        return ScheduledTask(
            name=name,
            frequency=frequency,
            callback=opts.callback,
            begin_at=begin_at,
            context=context,
            once=bool(opts.once),
            immediate=bool(opts.immediate),
            start_of=unit,
            generation=next(self._generations),
        )

    def _target(self, task: ScheduledTask, cycle: int) -> datetime:
        # Cycle k is begin_at + k periods, truncated to start_of.
        return next_fire_after(task.begin_at, task.frequency, task.start_of, self.tz, cycle)

    def _arm(self, task: ScheduledTask, cycle: int) -> None:
        target = self._target(task, cycle)
        delay_ms = self.queue.compute_delay(target, self._clock())
        self.queue.add(partial(self._fire, task.name, task.generation, cycle), delay_ms)
        logger.debug("Task %r cycle %d armed for %s (in %d ms).", task.name, cycle, target.isoformat(), delay_ms)

    def _fire(self, name: str, generation: int, cycle: int) -> None:
        with self._lock:
            task = self._tasks.get(name)
            if task is None or task.generation != generation:
                logger.debug("Timer for %r fired after unschedule/replace; ignoring.", name)
                return

            if task.once:
                self._states[name] = TaskState.FIRED
            else:
                nxt = self._next_cycle(task, cycle)
                self._arm(task, nxt)
                self._cycles[name] = nxt
                self._states[name] = TaskState.ARMED

        logger.debug("Task %r fired (cycle %d).", name, cycle)
        self._invoke(task)

        if task.once:
            with self._lock:
                if self._states.get(name) is TaskState.FIRED and self._tasks.get(name) is task:
                    self._states[name] = TaskState.TERMINAL

    def _next_cycle(self, task: ScheduledTask, fired: int) -> int:
        """
        First cycle after `fired` whose target is later than both now and the fired target.

        A start_of unit coarser than the frequency maps several cycles onto one
        instant; those are stepped over along with cycles already in the past.
        """
        fired_at = self._target(task, fired)
        floor = max(self._clock(), fired_at)

        cycle = fired + 1
        target = self._target(task, cycle)
        last, missed = fired_at, 0
        while target <= floor:
            if target > last:
                missed += 1
                last = target
            cycle += 1
            target = self._target(task, cycle)

        if missed:
            logger.warning("Task %r skipped %d missed cycle(s).", task.name, missed)
        return cycle

    def _invoke(self, task: ScheduledTask) -> None:
        with self._lock:
            running = self._inflight.get(task.name)
            if running is not None and not running.done():
                logger.warning("Task %r is still running; skipping this cycle.", task.name)
                return

        try:
            result = task.callback(task.context)
        except Exception:
            logger.exception("Task %r callback failed.", task.name)
            return

        if not inspect.isawaitable(result):
            return
        try:
            run = self._spawn(result)
        except ConfigurationError:
            logger.exception("Task %r returned an awaitable but no event loop can run it.", task.name)
            if inspect.iscoroutine(result):
                result.close()
            return
        with self._lock:
            self._inflight[task.name] = run
        run.add_done_callback(partial(self._on_run_done, task.name))

    def _spawn(self, awaitable: Awaitable[Any]) -> _RunFuture:
        loop = self.queue.loop
        if self.queue.in_loop_thread():
            return loop.create_task(_await(awaitable))
        return asyncio.run_coroutine_threadsafe(_await(awaitable), loop)

    def _on_run_done(self, name: str, run: _RunFuture) -> None:
        with self._lock:
            if self._inflight.get(name) is run:
                del self._inflight[name]

        if run.cancelled():
            return
        exc = run.exception()
        if exc is not None:
            logger.error("Task %r callback failed.", name, exc_info=exc)
