# src/herald/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) shared by the core and the connectors.

Connectors translate platform events into InboundMessage and implement
OutboundMessenger; everything else only sees these two shapes.
"""

from dataclasses import dataclass
from typing import Awaitable, Protocol


@dataclass(slots=True, frozen=True)
class InboundMessage:
    """A text message as seen by dispatch, independent of the transport."""

    text: str
    sender: str
    room_id: str | None = None
    room_name: str | None = None
    is_direct: bool = False
    sender_is_bot: bool = False
    connector: str = "console"


class OutboundMessenger(Protocol):
    """
    Connector-side port: how scheduled tasks and commands send text outward.

    The connector decides how to interpret room_id / to_user_id
    (e.g. Matrix picks a default room if room_id is missing).
    """

    def send_text(
            self,
            *,
            text: str,
            room_id: str | None = None,
            to_user_id: str | None = None,
    ) -> Awaitable[None]: ...
