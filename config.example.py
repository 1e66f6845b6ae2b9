# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored) for the Matrix password.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "HERALD_APP_NAME": "App display name (default: herald).",
    "HERALD_LOG_LEVEL": "Logging level (default: INFO).",
    "HERALD_DATA_DIR": "Local data directory (default: .local/herald).",
    # Connectors
    "HERALD_CONSOLE_ENABLED": "Enable console connector (true/false).",
    "HERALD_MATRIX_ENABLED": "Enable Matrix connector (true/false).",
    # Command handling
    "HERALD_COMMAND_PREFIX": "Prefix for bot commands (default: !).",
    "HERALD_ALLOWED_ROOMS": "Comma/space separated room IDs the bot may talk in (empty => all rooms).",
    "HERALD_RESPOND_TO_BOTS": "Whether the bot reacts to messages from other bots (true/false).",
    "HERALD_BOT_USERS": "Comma/space separated user IDs treated as bots.",
    "HERALD_BOOT_MSG": "Message logged once the connector is ready (default: Connected!).",
    "HERALD_STATUS_MSG": "Optional presence status message.",
    # Scheduling / throttling
    "HERALD_TIMEZONE": "IANA timezone used for schedules and calendar rounding (default: UTC).",
    "HERALD_DEFAULT_RATE_LIMIT": "Command uses per user per minute (default: 3, 0 => unlimited).",
    "HERALD_AUDIT_BACKLOG_MINUTES": "Minutes of command audit history kept (default: 10).",
    # Matrix
    "HERALD_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "HERALD_MATRIX_USER_ID": "Matrix user ID (bot).",
    "HERALD_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "HERALD_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
}
