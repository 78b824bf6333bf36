"""Chat database schema."""

import sqlite3

DEFAULT_CHANNELS: tuple[str, ...] = ("announcements", "general")

SCHEMA: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY,
        username TEXT NOT NULL,
        password TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS channels (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        is_deletable INTEGER NOT NULL DEFAULT 1,
        is_group INTEGER NOT NULL DEFAULT 0,
        creator_id INTEGER REFERENCES users(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS channel_members (
        channel_id INTEGER NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        PRIMARY KEY (channel_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        channel_id INTEGER NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
        user_id INTEGER,
        username TEXT NOT NULL,
        text TEXT NOT NULL,
        created_at TEXT NOT NULL,
        reply_to_id INTEGER REFERENCES messages(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_channel ON messages (channel_id, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS read_receipts (
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        channel_id INTEGER NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
        last_read_message_id INTEGER NOT NULL,
        PRIMARY KEY (user_id, channel_id)
    )
    """,
)


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create any missing tables and seed the default channels.

    Idempotent: existing tables and channels are left untouched.
    """
    for statement in SCHEMA:
        _ = conn.execute(statement)
    for name in DEFAULT_CHANNELS:
        _ = conn.execute(
            "INSERT OR IGNORE INTO channels (name, is_deletable, is_group) "
            "VALUES (?, 0, 0)",
            (name,),
        )
