# tests/test_commands.py

from __future__ import annotations

import pytest

from herald.commands.registry import UNDOCUMENTED, CommandRegistry
from herald.errors import MissingOption


def _reply(text: str):
    def handler(ctx, message, args):
        return text

    return handler


def test_register_and_lookup_is_case_insensitive() -> None:
    reg = CommandRegistry()
    spec = reg.register("Ping", _reply("pong"), "Answer with pong.")

    assert spec.name == "ping"
    assert reg.lookup("PING") is spec
    assert "ping" in reg
    assert len(reg) == 1


def test_register_defaults() -> None:
    reg = CommandRegistry()
    spec = reg.register("quiet", _reply("..."))

    assert spec.help_text == UNDOCUMENTED
    assert spec.rate_limit is None
    assert spec.allow_dm is False


def test_aliases_resolve_and_disappear_with_command() -> None:
    reg = CommandRegistry()
    spec = reg.register("help", _reply("h"), aliases=["h", "?"])

    assert reg.lookup("?") is spec
    assert reg.unregister("help") is True
    assert reg.lookup("h") is None
    assert reg.unregister("help") is False


@pytest.mark.parametrize(("name", "handler", "missing"), [("", _reply("x"), "name"), ("ok", None, "handler")])
def test_register_requires_name_and_handler(name: str, handler, missing: str) -> None:
    reg = CommandRegistry()
    with pytest.raises(MissingOption) as exc:
        reg.register(name, handler)
    assert exc.value.option == missing
    assert len(reg) == 0


def test_reregister_replaces_command() -> None:
    reg = CommandRegistry()
    reg.register("x", _reply("first"))
    spec = reg.register("x", _reply("second"), rate_limit=0)

    assert len(reg) == 1
    assert reg.lookup("x") is spec
    assert spec.handler(None, None, []) == "second"


def test_build_help_lists_commands_with_prefix() -> None:
    reg = CommandRegistry()
    reg.register("a", _reply(""), "Does a.")
    reg.register("b", _reply(""))

    text = reg.build_help("?")

    assert text.splitlines() == ["Available commands:", "  ?a - Does a.", f"  ?b - {UNDOCUMENTED}"]
