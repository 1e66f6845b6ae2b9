# src/herald/core/context.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..commands.auditor import RateAuditor
from ..commands.registry import CommandRegistry
from ..config import Settings
from ..dispatch.handlers import HandlerRegistry
from ..scheduling.scheduler import Scheduler
from .ports import OutboundMessenger


@dataclass
class BotContext:
    """
    The object passed to command handlers, event handlers and (by default) scheduled tasks.

    messenger is installed by whichever connector is currently able to send;
    lock serializes command handling between the console thread and the loop thread.
    """

    settings: Settings
    commands: CommandRegistry
    auditor: RateAuditor
    handlers: HandlerRegistry
    scheduler: Scheduler
    messenger: OutboundMessenger | None = None
    lock: threading.RLock = field(default_factory=threading.RLock)
