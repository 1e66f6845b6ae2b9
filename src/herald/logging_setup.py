# src/herald/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE = "herald.log"

# Loggers that stay quiet on the console unless something goes wrong.
QUIET_HERALD_LOGGERS = ("herald.connectors.matrix_", "herald.scheduling.timer_queue")

# Third-party loggers capped at these levels for every handler.
LIBRARY_LEVELS = {"nio": logging.INFO, "aiohttp": logging.WARNING, "asyncio": logging.WARNING}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console REPL readable.

    herald records pass, except the Matrix connector and timer internals,
    which need WARNING+. Everything else (py.warnings, libraries) needs ERROR+.
    """

    def __init__(self, quiet_prefixes: Iterable[str] = QUIET_HERALD_LOGGERS) -> None:
        super().__init__()
        self.quiet_prefixes = tuple(quiet_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "herald" or name.startswith("herald."):
            if name.startswith(self.quiet_prefixes):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def level_from_name(name: str | int, default: int = logging.INFO) -> int:
    """Map "debug" / "INFO" / 20 to a logging level."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/herald",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    max_bytes: int = 5_000_000,
    backups: int = 3,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler on the root logger.

    Call once at startup, before connectors start logging. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level_from_name(console_level))
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    file_handler.setLevel(level_from_name(file_level, logging.DEBUG))
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    logging.captureWarnings(True)
    return log_file
