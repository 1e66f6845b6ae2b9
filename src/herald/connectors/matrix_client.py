# src/herald/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

from ..config import Settings

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


def _load_session(path: Path) -> dict[str, str] | None:
    """Read access_token/user_id/device_id from session.json (None if unusable)."""
    try:
        data: Any = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot read Matrix session %s: %r", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Matrix session %s is not a JSON object.", path)
        return None

    fields = ("access_token", "user_id", "device_id")
    if not all(data.get(k) for k in fields):
        logger.warning("Matrix session %s is missing required fields.", path)
        return None
    return {k: str(data[k]) for k in fields}


def _save_session(path: Path, resp: LoginResponse) -> None:
    tmp = path.with_suffix(".tmp")
    payload = {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id}
    tmp.write_text(json.dumps(payload, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        # Best-effort: not critical on Windows or restricted FS.
        logger.debug("chmod failed for %s", path, exc_info=True)


async def create_matrix_client(settings: Settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient.

    Reuses the access token stored in <matrix_store_path>/session.json when present;
    otherwise logs in with the password once and stores the new session there.
    The session file holds credentials and must stay under the gitignored data dir.
    """
    store_dir = Path(settings.matrix_store_path)
    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = store_dir / SESSION_FILE

    client = AsyncClient(
        settings.matrix_homeserver,
        settings.matrix_user_id,
        config=AsyncClientConfig(store_sync_tokens=True),
    )

    if session_file.exists():
        session = _load_session(session_file)
        if session is not None:
            client.access_token = session["access_token"]
            client.user_id = session["user_id"]
            client.device_id = session["device_id"]
            logger.info("Matrix session restored for %s.", client.user_id)
            return client
        logger.warning("Falling back to password login.")

    if not settings.matrix_password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set HERALD_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{settings.app_name} (Python)"
    logger.info("Logging in to Matrix to bootstrap a new session (device_name=%r)...", device_name)
    resp = await client.login(password=settings.matrix_password, device_name=device_name)

    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _save_session(session_file, resp)
        logger.info("Matrix session saved to %s (user=%s).", session_file, resp.user_id)
    except OSError:
        logger.exception("Failed to write Matrix session %s; continuing with an unsaved session.", session_file)

    return client
