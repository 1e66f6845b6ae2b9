"""herald: a small framework for event-driven chat bots with recurring scheduled tasks."""

from .core.bot import Bot
from .errors import ConfigurationError, HeraldError, InvalidTimestamp, MissingOption
from .scheduling import Frequency, Scheduler, StartOf, TaskOptions, TimerQueue

__all__ = [
    "Bot",
    "ConfigurationError",
    "Frequency",
    "HeraldError",
    "InvalidTimestamp",
    "MissingOption",
    "Scheduler",
    "StartOf",
    "TaskOptions",
    "TimerQueue",
]

__version__ = "0.1.0"
