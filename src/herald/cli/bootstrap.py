# src/herald/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- builds the Bot on the shared event loop,
- registers built-in commands and housekeeping tasks.
"""

from __future__ import annotations

import asyncio
import logging

from ..commands.builtin import register_builtin_commands
from ..config import Settings, get_settings
from ..core.bot import Bot
from ..core.context import BotContext

logger = logging.getLogger(__name__)

AUDIT_PRUNE_TASK = "auditor-prune"


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def _prune_audit(ctx: BotContext) -> None:
    ctx.auditor.prune()


def install_housekeeping(bot: Bot) -> None:
    """Background tasks every bot runs."""
    bot.schedule(
        name=AUDIT_PRUNE_TASK,
        frequency="minute",
        start_of="minute",
        callback=_prune_audit,
    )


def create_bot(*, settings: Settings | None = None, loop: asyncio.AbstractEventLoop | None = None) -> Bot:
    """
    Create a fully wired Bot.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    bot = Bot(settings, loop=loop)
    register_builtin_commands(bot.context.commands)
    install_housekeeping(bot)
    logger.debug("Bot created with %d command(s).", len(bot.context.commands))
    return bot
