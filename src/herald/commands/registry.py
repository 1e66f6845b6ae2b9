# src/herald/commands/registry.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import MissingOption

if TYPE_CHECKING:
    from ..core.context import BotContext
    from ..core.ports import InboundMessage

CommandHandler = Callable[["BotContext", "InboundMessage", list[str]], "str | None"]

UNDOCUMENTED = "[undocumented]"

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CommandSpec:
    """
    A registered command.

    rate_limit=None falls back to the bot-wide default; 0 disables throttling.
    """

    name: str
    handler: CommandHandler
    help_text: str = UNDOCUMENTED
    rate_limit: int | None = None
    allow_dm: bool = False


class CommandRegistry:
    """Prefix-command registry used by the message dispatch pipeline (!help, !tasks, ...)."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandSpec] = {}
        self._aliases: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler | None,
        help_text: str | None = None,
        *,
        rate_limit: int | None = None,
        allow_dm: bool = False,
        aliases: list[str] | None = None,
    ) -> CommandSpec:
        if not name or not name.strip():
            raise MissingOption("name")
        if handler is None:
            raise MissingOption("handler")

        key = name.strip().lower()
        spec = CommandSpec(
            name=key,
            handler=handler,
            help_text=help_text or UNDOCUMENTED,
            rate_limit=rate_limit,
            allow_dm=bool(allow_dm),
        )
        if key in self._commands:
            logger.info("Command %r re-registered.", key)
        self._commands[key] = spec
        for alias in aliases or []:
            self._aliases[alias.strip().lower()] = key
        return spec

    def unregister(self, name: str) -> bool:
        key = name.strip().lower()
        removed = self._commands.pop(key, None)
        for alias in [a for a, target in self._aliases.items() if target == key]:
            del self._aliases[alias]
        return removed is not None

    def lookup(self, name: str) -> CommandSpec | None:
        key = name.strip().lower()
        return self._commands.get(self._aliases.get(key, key))

    def help_entries(self) -> list[tuple[str, str]]:
        return [(spec.name, spec.help_text) for spec in self._commands.values()]

    def build_help(self, prefix: str = "!") -> str:
        lines = ["Available commands:"]
        for name, help_text in self.help_entries():
            lines.append(f"  {prefix}{name} - {help_text}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._commands)
