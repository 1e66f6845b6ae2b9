# src/herald/commands/builtin.py

from __future__ import annotations

import logging
from collections.abc import Awaitable
from functools import partial
from typing import TYPE_CHECKING

from ..errors import HeraldError
from ..scheduling.task_models import Frequency
from .registry import CommandRegistry

if TYPE_CHECKING:
    from ..core.context import BotContext
    from ..core.ports import InboundMessage

logger = logging.getLogger(__name__)

# Tasks created from chat live under their own prefix so users cannot
# replace or remove the bot's internal tasks.
CHAT_TASK_PREFIX = "chat:"


def announce(ctx: BotContext, *, text: str, room_id: str | None) -> Awaitable[None] | None:
    """Scheduled-task callback: send text through whichever connector is active."""
    messenger = ctx.messenger
    if messenger is None:
        logger.warning("No messenger connected; dropping scheduled message for room %s.", room_id)
        return None
    return messenger.send_text(text=text, room_id=room_id)


def cmd_help(ctx: BotContext, message: InboundMessage, args: list[str]) -> str:
    return ctx.commands.build_help(ctx.settings.command_prefix)


def cmd_status(ctx: BotContext, message: InboundMessage, args: list[str]) -> str:
    s = ctx.settings
    connectors = [name for name, on in (("console", s.console_enabled), ("matrix", s.matrix_enabled)) if on]
    messenger = type(ctx.messenger).__name__ if ctx.messenger is not None else "none"
    return (
        "Status:\n"
        f"  App: {s.app_name}\n"
        f"  Connectors: {', '.join(connectors) or 'none'}\n"
        f"  Messenger: {messenger}\n"
        f"  Scheduled tasks: {len(ctx.scheduler)} (timezone {s.timezone})"
    )


def cmd_tasks(ctx: BotContext, message: InboundMessage, args: list[str]) -> str:
    tasks = ctx.scheduler.tasks()
    if not tasks:
        return "No scheduled tasks."

    lines = ["Scheduled tasks:"]
    for task in tasks:
        state = ctx.scheduler.state_of(task.name)
        nxt = ctx.scheduler.upcoming(task.name)
        when = nxt.strftime("%Y-%m-%d %H:%M:%S %Z") if nxt is not None else "-"
        lines.append(f"  {task.name}: {task.describe()} [{state.value if state else '?'}] next={when}")
    return "\n".join(lines)


def cmd_schedule(ctx: BotContext, message: InboundMessage, args: list[str]) -> str:
    """
    !schedule <name> <frequency> [once] <text...>

    Posts <text> into the current room every <frequency> (or once).
    """
    prefix = ctx.settings.command_prefix
    usage = f"Usage: {prefix}schedule <name> <{'|'.join(f.value for f in Frequency)}> [once] <text>"
    if len(args) < 3:
        return usage

    name, frequency, rest = args[0], args[1], args[2:]
    once = rest[0].lower() == "once"
    if once:
        rest = rest[1:]
    text = " ".join(rest).strip()
    if not text:
        return usage

    task_name = CHAT_TASK_PREFIX + name.lower()
    try:
        ctx.scheduler.schedule(
            name=task_name,
            frequency=frequency,
            once=once,
            callback=partial(announce, text=text, room_id=message.room_id),
        )
    except HeraldError as e:
        return f"Cannot schedule {name!r}: {e}"

    nxt = ctx.scheduler.upcoming(task_name)
    when = nxt.strftime("%Y-%m-%d %H:%M:%S %Z") if nxt is not None else "soon"
    logger.info("User %s scheduled %s (%s, once=%s).", message.sender, task_name, frequency, once)
    return f"Scheduled {task_name} ({frequency}{', once' if once else ''}); first run at {when}."


def cmd_unschedule(ctx: BotContext, message: InboundMessage, args: list[str]) -> str:
    if not args:
        return f"Usage: {ctx.settings.command_prefix}unschedule <name>"

    task_name = CHAT_TASK_PREFIX + args[0].lower()
    if task_name not in ctx.scheduler:
        return f"No task named {task_name}."
    ctx.scheduler.unschedule(task_name)
    return f"Unscheduled {task_name}."


def register_builtin_commands(registry: CommandRegistry) -> None:
    registry.register("help", cmd_help, "Show available commands.", allow_dm=True, aliases=["h", "?"])
    registry.register("status", cmd_status, "Show connectors and scheduler status.", allow_dm=True)
    registry.register("tasks", cmd_tasks, "List scheduled tasks.", allow_dm=True)
    registry.register(
        "schedule",
        cmd_schedule,
        "Post a message on a schedule: schedule <name> <frequency> [once] <text>.",
    )
    registry.register("unschedule", cmd_unschedule, "Stop a scheduled message: unschedule <name>.")
