"""
Scheduling subsystem.

Components:
- task_models.py: frequencies, calendar units, task options/definitions, timestamp parsing
- timer_queue.py: delayed callbacks on the event loop + delay arithmetic
- scheduler.py: named recurring tasks re-armed on every fire
"""

from .scheduler import Scheduler
from .task_models import Frequency, ScheduledTask, StartOf, TaskOptions, TaskState
from .timer_queue import TimerHandle, TimerQueue

__all__ = [
    "Frequency",
    "ScheduledTask",
    "Scheduler",
    "StartOf",
    "TaskOptions",
    "TaskState",
    "TimerHandle",
    "TimerQueue",
]
