# src/herald/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..core.ports import InboundMessage
from .matrix_client import create_matrix_client

if TYPE_CHECKING:
    from ..config import Settings
    from ..core.bot import Bot

logger = logging.getLogger(__name__)

SYNC_TIMEOUT_MS = 30000


def _ms_now() -> int:
    return int(time.time() * 1000)


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


@dataclass(slots=True)
class MatrixMessenger:
    """OutboundMessenger over a Matrix client. Messages without a room go to the default room."""

    client: AsyncClient
    default_room: str | None = None

    async def send_text(
        self,
        *,
        text: str,
        room_id: str | None = None,
        to_user_id: str | None = None,
    ) -> None:
        target = (room_id or "").strip() or self.default_room
        if not target and self.client.rooms:
            target = next(iter(self.client.rooms.keys()))
        if not target:
            logger.warning("No room to send to; message dropped.")
            return
        await _send_text(self.client, room_id=target, text=text)


def to_inbound(room: MatrixRoom, event: RoomMessageText, settings: Settings) -> InboundMessage:
    return InboundMessage(
        text=(event.body or "").strip(),
        sender=event.sender,
        room_id=room.room_id,
        room_name=room.display_name,
        is_direct=room.member_count <= 2,
        sender_is_bot=event.sender in settings.bot_users,
        connector="matrix",
    )


async def _run_matrix_bot(bot: Bot, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    login -> callbacks -> initial sync -> ready -> sync loop

    Shutdown: stop_event is set from another thread via loop.call_soon_threadsafe;
    the manual sync loop exits after the current long-poll returns.
    """
    settings = bot.settings
    ctx = bot.context

    startup_ts = _ms_now()
    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    default_room = settings.allowed_rooms[0] if settings.allowed_rooms else None
    messenger = MatrixMessenger(client=client, default_room=default_room)
    previous_messenger = ctx.messenger

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # Ignore history from before startup and our own messages.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return
        if event.sender == client.user_id:
            return

        message = to_inbound(room, event, settings)
        if not message.text:
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, message.text)

        try:
            reply = bot.handle(message)
        except Exception:
            logger.exception("Message handler crashed.")
            reply = "Internal error while handling a command."

        if not reply:
            return
        try:
            await messenger.send_text(text=reply, room_id=room.room_id)
        except Exception:
            logger.exception("Failed to send reply to %s.", room.room_id)

    client.add_event_callback(message_callback, RoomMessageText)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=SYNC_TIMEOUT_MS, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        ctx.messenger = messenger
        if settings.status_msg:
            with contextlib.suppress(Exception):
                await client.set_presence("online", settings.status_msg)
        logger.info("%s", settings.boot_msg)
        try:
            bot.emit("ready", messenger)
        except Exception:
            logger.exception("ready handler crashed.")

        while not stop_event.is_set():
            await client.sync(timeout=SYNC_TIMEOUT_MS, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
        raise
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        if ctx.messenger is messenger:
            ctx.messenger = previous_messenger
        with contextlib.suppress(Exception):
            await client.close()
        logger.info("Matrix connector stopped.")


@dataclass
class MatrixConnection:
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    future: Future[Any]

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal Matrix stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        try:
            self.future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning("Matrix connector did not stop in %.1fs; cancelling.", timeout or 0.0)
            self.future.cancel()
        except Exception:
            # Already logged inside the connector.
            logger.debug("Matrix connector ended with an error.", exc_info=True)


def start_matrix_connection(bot: Bot) -> MatrixConnection:
    """Run the Matrix connector on the bot's (background) event loop."""
    assert bot.loop is not None
    stop_event = asyncio.Event()
    future = asyncio.run_coroutine_threadsafe(_run_matrix_bot(bot, stop_event), bot.loop)
    future.add_done_callback(lambda _f: bot.connection_closed())
    logger.info("Matrix connector scheduled on the background loop.")
    return MatrixConnection(loop=bot.loop, stop_event=stop_event, future=future)
