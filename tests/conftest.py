# tests/conftest.py

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

import pytest

from herald.config import Settings, get_settings
from herald.core.bot import Bot
from herald.scheduling.scheduler import Scheduler

from .fakes import ManualClock, RecordingQueue

T0 = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings pinned to known values.

    Built from the real Settings type, but every field a test depends on is
    overridden so the developer's environment / .env cannot leak in.
    """
    return replace(
        get_settings(),
        app_name="herald-test",
        data_dir=tmp_path,
        matrix_store_path=tmp_path / "matrix_store",
        console_enabled=True,
        matrix_enabled=False,
        command_prefix="!",
        allowed_rooms=[],
        respond_to_bots=False,
        bot_users=[],
        timezone="UTC",
        default_rate_limit=3,
        audit_backlog_minutes=10,
        matrix_homeserver="",
        matrix_user_id="",
        matrix_password="",
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture()
def queue(clock: ManualClock) -> RecordingQueue:
    return RecordingQueue(clock)


@pytest.fixture()
def scheduler(queue: RecordingQueue, clock: ManualClock) -> Scheduler:
    return Scheduler("default-ctx", queue=queue, clock=clock)


@pytest.fixture()
def bot(settings: Settings, queue: RecordingQueue, clock: ManualClock) -> Bot:
    from herald.commands.builtin import register_builtin_commands

    b = Bot(settings, clock=clock, queue=queue)
    register_builtin_commands(b.context.commands)
    return b
