# src/herald/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from ..core.ports import InboundMessage

if TYPE_CHECKING:
    from ..core.bot import Bot

logger = logging.getLogger(__name__)

CONSOLE_USER = "console"


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


@dataclass(slots=True)
class ConsoleMessenger:
    """OutboundMessenger that prints scheduled messages to the terminal."""

    async def send_text(
        self,
        *,
        text: str,
        room_id: str | None = None,
        to_user_id: str | None = None,
    ) -> None:
        where = f" -> {room_id}" if room_id else ""
        print(f"\n[{_ts_local()}] [TASK{where}] {text}", flush=True)


def run_console_loop(bot: Bot, *, read_line: Callable[[str], str] = input) -> None:
    prefix = bot.settings.command_prefix
    logger.info("Console connector started.")
    print(f"[{_ts_local()}] [CONSOLE] Type commands ({prefix}help lists them). Use /exit to quit.\n")

    if bot.context.messenger is None:
        bot.context.messenger = ConsoleMessenger()

    while True:
        try:
            line = read_line(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {line}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        message = InboundMessage(text=line, sender=CONSOLE_USER, connector="console")
        try:
            reply = bot.handle(message)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            if line.startswith(prefix):
                print(f"[{_ts_local()}] Unknown or unavailable command. Use {prefix}help.")
            continue

        print(f"[{_ts_local()}] {reply}")

    logger.info("Console connector finished.")
