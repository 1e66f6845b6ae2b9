# src/herald/scheduling/task_models.py

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from ..errors import ConfigurationError, InvalidTimestamp, MissingOption

TaskCallback = Callable[[Any], Any]
Timestamp = datetime | date | str | int | float


class Frequency(StrEnum):
    """Named recurrence interval."""

    DECIMINUTE = "deciminute"
    MINUTE = "minute"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, raw: Frequency | str) -> Frequency:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise ConfigurationError(f"unknown frequency {raw!r} (expected one of: {allowed})") from None

    @property
    def duration(self) -> relativedelta:
        return _DURATIONS[self]


class StartOf(StrEnum):
    """Calendar unit a computed fire time is moved to the start of."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, raw: StartOf | str) -> StartOf:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(u.value for u in cls)
            raise ConfigurationError(f"unknown start_of unit {raw!r} (expected one of: {allowed})") from None


class TaskState(StrEnum):
    ARMED = "armed"
    FIRED = "fired"
    TERMINAL = "terminal"


_DURATIONS: dict[Frequency, relativedelta] = {
    Frequency.DECIMINUTE: relativedelta(seconds=10),
    Frequency.MINUTE: relativedelta(minutes=1),
    Frequency.HOURLY: relativedelta(hours=1),
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(days=7),
    Frequency.MONTHLY: relativedelta(months=1),
}

# datetime.weekday() of the first day of a week (Sunday).
WEEK_START = 6


def parse_timestamp(value: Any, tz: tzinfo) -> datetime:
    """
    Interpret value as an aware datetime.

    Accepts datetimes and dates (naive values are taken to be in tz),
    date strings understood by dateutil, and epoch seconds.
    """
    if isinstance(value, bool):
        raise InvalidTimestamp(value)

    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=tz)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz)
        except (OverflowError, OSError, ValueError):
            raise InvalidTimestamp(value) from None

    if isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError):
            raise InvalidTimestamp(value) from None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=tz)

    raise InvalidTimestamp(value)


def start_of(moment: datetime, unit: StartOf) -> datetime:
    """Move moment back to the first instant of the calendar unit containing it."""
    out = moment.replace(second=0, microsecond=0)
    if unit is StartOf.MINUTE:
        return out
    out = out.replace(minute=0)
    if unit is StartOf.HOUR:
        return out
    out = out.replace(hour=0)
    if unit is StartOf.DAY:
        return out
    if unit is StartOf.WEEK:
        return out - timedelta(days=(out.weekday() - WEEK_START) % 7)
    return out.replace(day=1)


def next_fire_after(
    anchor: datetime,
    frequency: Frequency,
    unit: StartOf | None,
    tz: tzinfo,
    cycles: int = 1,
) -> datetime:
    """
    anchor + `cycles` frequency periods, truncated to unit (in tz) when given.

    The offset is always taken from the anchor in one step, so month-end
    anchors keep landing on month ends (Jan 31 -> Feb 29 -> Mar 31).
    """
    nxt = anchor.astimezone(tz) + frequency.duration * cycles
    if unit is not None:
        nxt = start_of(nxt, unit)
    return nxt


@dataclass(slots=True)
class TaskOptions:
    """
    Options accepted by Scheduler.schedule().

    name, frequency and callback are required. Everything else has a default:
    begin_at -> now, context -> the scheduler's default context.
    """

    name: str
    frequency: Frequency | str
    callback: TaskCallback
    begin_at: Timestamp | None = None
    context: Any = None
    immediate: bool = False
    once: bool = False
    start_of: StartOf | str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TaskOptions:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown task option(s): {', '.join(unknown)}")

        for required in ("name", "frequency", "callback"):
            if data.get(required) is None:
                raise MissingOption(required)

        return cls(**dict(data))


@dataclass(slots=True, frozen=True)
class ScheduledTask:
    """A registered task definition (one per name)."""

    name: str
    frequency: Frequency
    callback: TaskCallback
    begin_at: datetime
    context: Any
    once: bool
    immediate: bool
    start_of: StartOf | None
    generation: int

    def describe(self) -> str:
        parts = [self.frequency.value]
        if self.start_of is not None:
            parts.append(f"start_of={self.start_of.value}")
        if self.once:
            parts.append("once")
        return " ".join(parts)
