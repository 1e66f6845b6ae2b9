# tests/test_dispatch.py

from __future__ import annotations

from dataclasses import replace

import pytest

from herald.core.bot import Bot
from herald.core.ports import InboundMessage
from herald.dispatch.commands import parse_command
from herald.dispatch.handlers import HandlerRegistry
from herald.errors import MissingOption
from herald.scheduling.task_models import Frequency

from .fakes import RecordingQueue


def msg(text: str, **kw) -> InboundMessage:
    kw.setdefault("sender", "@alice:example.org")
    kw.setdefault("room_id", "!room:example.org")
    return InboundMessage(text=text, **kw)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("!help", ("help", [])),
        ("  !Schedule a daily hi there ", ("schedule", ["a", "daily", "hi", "there"])),
        ("help", None),
        ("!", None),
        ("", None),
    ],
)
def test_parse_command(text: str, expected) -> None:
    assert parse_command(text, "!") == expected


def test_help_lists_builtins(bot: Bot) -> None:
    reply = bot.handle(msg("!help"))
    assert reply is not None
    assert "!schedule" in reply
    assert "!tasks" in reply
    assert bot.handle(msg("!?")) == reply


def test_plain_text_and_unknown_commands_are_ignored(bot: Bot) -> None:
    assert bot.handle(msg("hello there")) is None
    assert bot.handle(msg("!nope")) is None


def test_rate_limit_drops_extra_uses(bot: Bot) -> None:
    replies = [bot.handle(msg("!status")) for _ in range(4)]

    assert all(r is not None for r in replies[:3])
    assert replies[3] is None
    # Other users keep their own budget.
    assert bot.handle(msg("!status", sender="@bob:example.org")) is not None


def test_command_rate_limit_zero_is_unlimited(bot: Bot) -> None:
    bot.bind("spam", lambda ctx, m, args: "ok", rate_limit=0)
    assert [bot.handle(msg("!spam")) for _ in range(10)] == ["ok"] * 10


def test_direct_messages_need_allow_dm(bot: Bot) -> None:
    assert bot.handle(msg("!unschedule x", is_direct=True)) == "!unschedule is not available in direct messages."
    assert bot.handle(msg("!tasks", is_direct=True)) == "No scheduled tasks."


def test_allowlist_limits_rooms_but_not_direct_messages(bot: Bot) -> None:
    bot.configure(allowed_rooms=["!ok:example.org"])

    assert bot.handle(msg("!tasks", room_id="!other:example.org")) is None
    assert bot.handle(msg("!tasks", room_id="!ok:example.org")) == "No scheduled tasks."
    assert bot.handle(msg("!tasks", room_id="!dm:example.org", is_direct=True)) == "No scheduled tasks."


def test_bots_are_ignored_unless_enabled(bot: Bot) -> None:
    bot.configure(bot_users=["@helper:example.org"])

    assert bot.handle(msg("!tasks", sender_is_bot=True)) is None
    assert bot.handle(msg("!tasks", sender="@helper:example.org")) is None

    bot.configure(respond_to_bots=True)
    assert bot.handle(msg("!tasks", sender_is_bot=True)) == "No scheduled tasks."


def test_custom_prefix(bot: Bot) -> None:
    bot.configure(command_prefix="?")
    assert bot.handle(msg("!tasks")) is None
    assert bot.handle(msg("?tasks")) == "No scheduled tasks."


def test_schedule_tasks_unschedule_round(bot: Bot, queue: RecordingQueue) -> None:
    reply = bot.handle(msg("!schedule News hourly Hello world"))

    assert reply is not None
    assert reply.startswith("Scheduled chat:news (hourly); first run at 2024-01-01 01:00:00")
    task = bot.scheduler.get_task("chat:news")
    assert task is not None
    assert task.frequency is Frequency.HOURLY
    assert task.callback.keywords == {"text": "Hello world", "room_id": "!room:example.org"}
    assert [h.delay_ms for h in queue.pending] == [3_600_000]

    listing = bot.handle(msg("!tasks"))
    assert listing is not None
    assert "chat:news: hourly [armed]" in listing

    assert bot.handle(msg("!unschedule news")) == "Unscheduled chat:news."
    assert bot.handle(msg("!unschedule news")) == "No task named chat:news."
    assert "chat:news" not in bot.scheduler


def test_schedule_once(bot: Bot) -> None:
    reply = bot.handle(msg("!schedule ping minute once Stand up"))
    assert reply is not None and ", once)" in reply

    task = bot.scheduler.get_task("chat:ping")
    assert task is not None
    assert task.once is True
    assert task.callback.keywords["text"] == "Stand up"


def test_schedule_reports_bad_input(bot: Bot) -> None:
    assert (bot.handle(msg("!schedule x daily")) or "").startswith("Usage: !schedule")
    reply = bot.handle(msg("!schedule x fortnightly hi"))
    assert reply is not None and reply.startswith("Cannot schedule 'x'")
    assert len(bot.scheduler) == 0


def test_handler_registry_dispatch() -> None:
    reg = HandlerRegistry()
    seen: list[tuple[object, object]] = []

    reg.add("ready", lambda payload, ctx: seen.append((payload, ctx)))
    reg.add("joined", lambda payload, ctx: seen.append((payload, ctx)), context="own")

    reg.dispatch("ready", 1, "default")
    reg.dispatch("joined", 2, "default")
    assert reg.dispatch("missing", 3, "default") is None

    assert seen == [(1, "default"), (2, "own")]
    assert set(reg.all()) == {"ready", "joined"}
    assert reg.remove("ready") is True
    assert reg.get("ready") is None
    assert reg.remove("ready") is False


def test_handler_registry_requires_callback() -> None:
    with pytest.raises(MissingOption) as exc:
        HandlerRegistry().add("message", None)
    assert exc.value.option == "callback"


def test_message_handler_can_be_replaced(bot: Bot) -> None:
    bot.observe("message", lambda m, ctx: f"echo {m.text}")
    assert bot.handle(msg("anything")) == "echo anything"


def test_settings_replace_keeps_pipeline(bot: Bot) -> None:
    bot.context.settings = replace(bot.settings, default_rate_limit=1)
    assert bot.handle(msg("!tasks")) == "No scheduled tasks."
    assert bot.handle(msg("!tasks")) is None
