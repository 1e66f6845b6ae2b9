# src/herald/dispatch/commands.py

from __future__ import annotations

"""
Inbound message -> command pipeline.

Registered as the bot's "message" handler. Filters, in order:
room allowlist, bot senders, command prefix, unknown command,
direct-message permission, per-user rate limit. Then tracks the use and
runs the command handler.
"""

import logging
from typing import TYPE_CHECKING

from ..core.ports import InboundMessage

if TYPE_CHECKING:
    from ..core.context import BotContext

logger = logging.getLogger(__name__)


def parse_command(text: str, prefix: str) -> tuple[str, list[str]] | None:
    """Split "<prefix>name arg1 arg2" into ("name", ["arg1", "arg2"])."""
    text = text.strip()
    if not prefix or not text.startswith(prefix):
        return None
    parts = text[len(prefix):].split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


def handle_command_message(message: InboundMessage, ctx: BotContext) -> str | None:
    """Run the command carried by message, if any. Returns the reply text or None."""
    settings = ctx.settings

    allowed_rooms = set(settings.allowed_rooms)
    if allowed_rooms and message.room_id and not message.is_direct and message.room_id not in allowed_rooms:
        return None

    if (message.sender_is_bot or message.sender in settings.bot_users) and not settings.respond_to_bots:
        return None

    parsed = parse_command(message.text, settings.command_prefix)
    if parsed is None:
        return None
    name, args = parsed

    spec = ctx.commands.lookup(name)
    if spec is None:
        logger.debug("Ignoring unknown command %r from %s.", name, message.sender)
        return None

    if message.is_direct and not spec.allow_dm:
        return f"{settings.command_prefix}{spec.name} is not available in direct messages."

    limit = settings.default_rate_limit if spec.rate_limit is None else spec.rate_limit
    if not ctx.auditor.permitted(message.sender, spec.name, limit):
        logger.info("Rate limit hit: user=%s command=%s limit=%d/min", message.sender, spec.name, limit)
        return None

    ctx.auditor.track(message.sender, spec.name)
    logger.debug("Running command %r for %s (room=%s).", spec.name, message.sender, message.room_id)
    return spec.handler(ctx, message, args)
