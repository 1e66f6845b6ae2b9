# src/herald/core/bot.py

from __future__ import annotations

"""
Bot facade.

Wires settings, the command registry, the rate auditor, event handlers and
the scheduler into one BotContext, and owns the platform connection lifecycle.
The BotContext doubles as the scheduler's default context.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..commands.auditor import RateAuditor
from ..commands.registry import CommandHandler, CommandRegistry, CommandSpec
from ..config import Settings, get_settings
from ..dispatch.commands import handle_command_message
from ..dispatch.handlers import EventCallback, EventHandler, HandlerRegistry
from ..errors import ConfigurationError, MissingOption
from ..scheduling.scheduler import Scheduler
from ..scheduling.task_models import TaskOptions
from ..scheduling.timer_queue import TimerQueue
from .context import BotContext
from .ports import InboundMessage

if TYPE_CHECKING:
    from ..connectors.matrix_connector import MatrixConnection

logger = logging.getLogger(__name__)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"unknown timezone {name!r}") from None


class Bot:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] | None = None,
        queue: TimerQueue | None = None,
    ) -> None:
        settings = settings or get_settings()
        tz = _zone(settings.timezone)
        queue = queue or TimerQueue(loop, tz=tz, clock=clock)

        self.loop = loop
        self.context = BotContext(
            settings=settings,
            commands=CommandRegistry(),
            auditor=RateAuditor(backlog_minutes=settings.audit_backlog_minutes),
            handlers=HandlerRegistry(),
            scheduler=Scheduler(queue=queue, tz=tz, clock=clock),
        )
        self.context.scheduler.set_context(self.context)
        self.context.handlers.add("message", handle_command_message)

        self._connection: MatrixConnection | None = None
        self._active = False

    @property
    def settings(self) -> Settings:
        return self.context.settings

    @property
    def scheduler(self) -> Scheduler:
        return self.context.scheduler

    def configure(self, overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> Settings:
        """
        Replace selected settings.

        The scheduler timezone is fixed at construction; changing it here is rejected.
        """
        merged = {**dict(overrides or {}), **kwargs}
        if "timezone" in merged and merged["timezone"] != self.settings.timezone:
            raise ConfigurationError("timezone cannot be changed after the bot is created")
        self.context.settings = self.settings.with_overrides(merged)
        return self.context.settings

    # ---- registration ----

    def observe(self, event: str, callback: EventCallback, context: Any = None) -> EventHandler:
        return self.context.handlers.add(event, callback, context)

    def bind(self, name: str, handler: CommandHandler, help_text: str | None = None, **params: Any) -> CommandSpec:
        return self.context.commands.register(name, handler, help_text, **params)

    def schedule(self, options: TaskOptions | Mapping[str, Any] | None = None, /, **kwargs: Any) -> Bot:
        self.scheduler.schedule(options, **kwargs)
        return self

    def unschedule(self, name: str) -> Bot:
        self.scheduler.unschedule(name)
        return self

    # ---- inbound ----

    def emit(self, event: str, payload: Any) -> Any:
        with self.context.lock:
            return self.context.handlers.dispatch(event, payload, self.context)

    def handle(self, message: InboundMessage) -> str | None:
        """Dispatch an inbound message; returns the reply text, if any."""
        return self.emit("message", message)

    # ---- connection lifecycle ----

    def connect(self) -> bool:
        """
        Start the Matrix connector on the bot's loop.

        Returns False if Matrix is disabled or not configured, or the bot has no loop.
        """
        if self._active:
            return True
        if not self.settings.matrix_enabled:
            logger.info("Matrix connector disabled via settings.")
            return False
        try:
            self.settings.require_matrix()
        except MissingOption as e:
            logger.error("Matrix is enabled but not configured: %s", e)
            return False
        if self.loop is None:
            logger.error("Bot has no event loop; cannot connect.")
            return False

        from ..connectors.matrix_connector import start_matrix_connection

        self._active = True
        self._connection = start_matrix_connection(self)
        return True

    def disconnect(self, timeout: float = 10.0) -> None:
        conn, self._connection = self._connection, None
        self._active = False
        if conn is not None:
            conn.stop()
            conn.join(timeout=timeout)

    def connection_closed(self) -> None:
        """Called by the connector when its loop task ends (normally or not)."""
        if self._active:
            logger.info("Platform connection closed.")
        self._active = False

    def is_active(self) -> bool:
        return self._active
