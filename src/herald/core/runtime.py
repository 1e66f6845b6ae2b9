# src/herald/core/runtime.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class LoopRunner:
    """
    An asyncio loop running on a daemon thread.

    Timers, scheduled tasks and the Matrix connector all live on this loop,
    so the console REPL can keep blocking on input() in the main thread.
    """

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future[Any]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.loop.stop)
        except RuntimeError:
            logger.debug("Loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def _drain(loop: asyncio.AbstractEventLoop) -> None:
    pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
    for t in pending:
        t.cancel()
    if pending:
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))


def start_loop_in_background(name: str = "herald-loop") -> LoopRunner:
    """Start an event loop in a background thread and wait until it is usable."""
    ready = threading.Event()
    holder: dict[str, asyncio.AbstractEventLoop] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        holder["loop"] = loop
        loop.call_soon(ready.set)

        try:
            loop.run_forever()
        finally:
            with contextlib.suppress(Exception):
                _drain(loop)
            with contextlib.suppress(Exception):
                loop.close()
            logger.debug("Background loop %s closed.", name)

    t = threading.Thread(target=runner, name=name, daemon=True)
    t.start()

    if not ready.wait(timeout=5.0) or "loop" not in holder:
        raise RuntimeError("background event loop did not start")

    logger.info("Background loop %s started.", name)
    return LoopRunner(thread=t, loop=holder["loop"])
