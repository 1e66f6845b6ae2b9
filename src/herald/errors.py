# src/herald/errors.py

from __future__ import annotations

from typing import Any


class HeraldError(Exception):
    """Base class for all errors raised by herald."""


class MissingOption(HeraldError, ValueError):
    """A required option was not supplied (or was empty)."""

    def __init__(self, option: str) -> None:
        super().__init__(f"missing option: {option}")
        self.option = option


class InvalidTimestamp(HeraldError, ValueError):
    """A value could not be interpreted as a calendar timestamp."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"invalid timestamp: {value!r}")
        self.value = value


class ConfigurationError(HeraldError, ValueError):
    """A configuration value is present but unusable."""
