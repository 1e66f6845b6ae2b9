# src/herald/cli/main.py

"""
Entry point for the `herald` command.

The asyncio loop (timers, scheduled tasks, Matrix sync) runs on a daemon
thread; the main thread either runs the console REPL or just waits for a
signal. Shutdown always disconnects the bot before stopping the loop.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..config import Settings, get_settings
from ..connectors.console_connector import run_console_loop
from ..core.bot import Bot
from ..core.runtime import start_loop_in_background
from ..logging_setup import setup_logging
from .bootstrap import create_bot

logger = logging.getLogger(__name__)


def _install_signal_handlers(stop: threading.Event, *, console: bool) -> None:
    def _on_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    # With the console running, Ctrl+C stays a KeyboardInterrupt for the REPL.
    signals = (signal.SIGTERM,) if console else (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        try:
            signal.signal(sig, _on_signal)
        except (ValueError, OSError):
            logger.debug("Cannot install handler for %s.", sig, exc_info=True)


def _serve(bot: Bot, settings: Settings, stop: threading.Event) -> None:
    if settings.matrix_enabled and not bot.connect():
        logger.error("Matrix connector could not be started.")

    if settings.console_enabled:
        run_console_loop(bot)
        return

    if not bot.is_active():
        logger.warning("No connector is running; only scheduled tasks will fire.")
    logger.info("Console disabled. Press Ctrl+C to stop.")
    stop.wait()


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    runner = start_loop_in_background()
    stop = threading.Event()
    _install_signal_handlers(stop, console=settings.console_enabled)

    bot = create_bot(settings=settings, loop=runner.loop)
    try:
        _serve(bot, settings, stop)
    finally:
        bot.disconnect()
        runner.stop()
        runner.join(timeout=5.0)
        logger.info("%s stopped.", settings.app_name)


if __name__ == "__main__":
    main()
