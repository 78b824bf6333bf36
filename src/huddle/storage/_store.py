"""SQLite-backed chat storage.

:class:`ChatRepository` holds the SQL and runs synchronously on one
connection. :class:`ChatStore` owns that connection for a running worker
and runs repository calls in worker threads, one at a time.
"""

import functools
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import ParamSpec, Self, TypeVar, cast, final

import anyio
import pendulum

from huddle.exceptions import StorageConflictError, StorageError, StorageOpenError
from huddle.utils.database import (
    fetch_all,
    fetch_one,
    insert,
    open_connection,
    placeholders,
    transaction,
)

from ._models import (
    Channel,
    ChatMessage,
    ImportResult,
    NewMessage,
    UserRecord,
    UserSummary,
)
from ._schema import initialize_schema

P = ParamSpec("P")
T = TypeVar("T")

_CHANNEL_COLUMNS = "c.id, c.name, c.is_deletable, c.is_group, c.creator_id"

_MESSAGE_SELECT = """
    SELECT m1.id, m1.channel_id, m1.user_id, m1.username, m1.text, m1.created_at,
           m1.reply_to_id,
           m2.username AS replied_to_username,
           m2.text AS replied_to_text
    FROM messages AS m1
    LEFT JOIN messages AS m2 ON m1.reply_to_id = m2.id
"""


def _unique_ids(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(ids))


@final
class ChatRepository:
    """Synchronous chat queries over one SQLite connection."""

    __slots__ = ("conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # -- users ---------------------------------------------------------------

    def create_user(self, user_id: int, username: str, password_hash: str) -> bool:
        """Insert a user. Returns False if the id is already taken."""
        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO users (id, username, password) VALUES (?, ?, ?)",
            (user_id, username, password_hash),
        )
        return cursor.rowcount > 0

    def get_user(self, user_id: int) -> UserRecord | None:
        return fetch_one(
            self.conn,
            UserRecord,
            "SELECT id, username, password FROM users WHERE id = ?",
            (user_id,),
        )

    def list_users(self) -> list[UserSummary]:
        return fetch_all(
            self.conn, UserSummary, "SELECT id, username FROM users ORDER BY id"
        )

    def import_users(self, rows: Iterable[tuple[int, str, str]]) -> ImportResult:
        """Insert users in one transaction, skipping ids that already exist.

        Args:
            rows: ``(id, username, password_hash)`` tuples.
        """
        imported = skipped = 0
        with transaction(self.conn):
            for user_id, username, password_hash in rows:
                if self.create_user(user_id, username, password_hash):
                    imported += 1
                else:
                    skipped += 1
        return ImportResult(imported=imported, skipped=skipped)

    # -- channels ------------------------------------------------------------

    def list_channels(self, user_id: int) -> list[Channel]:
        """List public channels plus the group channels the user belongs to."""
        return fetch_all(
            self.conn,
            Channel,
            f"""
            SELECT DISTINCT {_CHANNEL_COLUMNS}
            FROM channels c
            LEFT JOIN channel_members cm ON c.id = cm.channel_id
            WHERE c.is_group = 0 OR cm.user_id = ?
            ORDER BY c.id ASC
            """,  # noqa: S608
            (user_id,),
        )

    def get_channel(self, channel_id: int) -> Channel | None:
        return fetch_one(
            self.conn,
            Channel,
            f"SELECT {_CHANNEL_COLUMNS} FROM channels c WHERE c.id = ?",  # noqa: S608
            (channel_id,),
        )

    def create_channel(self, name: str) -> Channel:
        """Create a public channel.

        Raises:
            StorageConflictError: If the name is taken.
        """
        try:
            cursor = self.conn.execute(
                "INSERT INTO channels (name, is_group) VALUES (?, 0)", (name,)
            )
        except sqlite3.IntegrityError as e:
            msg = f"Channel name already exists: {name!r}"
            raise StorageConflictError(msg) from e
        return Channel(id=cast("int", cursor.lastrowid), name=name)

    def create_group(
        self, name: str, creator_id: int, member_ids: Iterable[int]
    ) -> Channel:
        """Create a group channel whose members are the creator plus ``member_ids``.

        Unknown user ids are ignored.

        Raises:
            StorageConflictError: If the name is taken.
        """
        members = _unique_ids([creator_id, *member_ids])
        try:
            with transaction(self.conn):
                cursor = self.conn.execute(
                    "INSERT INTO channels (name, is_group, creator_id) "
                    "VALUES (?, 1, (SELECT id FROM users WHERE id = ?))",
                    (name, creator_id),
                )
                channel_id = cast("int", cursor.lastrowid)
                self._add_members(channel_id, members)
        except sqlite3.IntegrityError as e:
            msg = f"Channel name already exists: {name!r}"
            raise StorageConflictError(msg) from e
        return Channel(id=channel_id, name=name, is_group=True, creator_id=creator_id)

    def rename_channel(self, channel_id: int, name: str) -> Channel | None:
        """Rename a channel. Returns None if it does not exist.

        Raises:
            StorageConflictError: If the name is taken.
        """
        try:
            cursor = self.conn.execute(
                "UPDATE channels SET name = ? WHERE id = ?", (name, channel_id)
            )
        except sqlite3.IntegrityError as e:
            msg = f"Channel name already exists: {name!r}"
            raise StorageConflictError(msg) from e
        if cursor.rowcount == 0:
            return None
        return self.get_channel(channel_id)

    def delete_channel(self, channel_id: int) -> bool:
        """Delete a deletable channel. Default channels are never deleted."""
        cursor = self.conn.execute(
            "DELETE FROM channels WHERE id = ? AND is_deletable = 1", (channel_id,)
        )
        return cursor.rowcount > 0

    def list_members(self, channel_id: int) -> list[UserSummary]:
        return fetch_all(
            self.conn,
            UserSummary,
            """
            SELECT u.id, u.username
            FROM users u
            JOIN channel_members cm ON u.id = cm.user_id
            WHERE cm.channel_id = ?
            ORDER BY u.id
            """,
            (channel_id,),
        )

    def add_members(self, channel_id: int, user_ids: Iterable[int]) -> int:
        """Add existing users to a channel. Returns the number of new members."""
        with transaction(self.conn):
            return self._add_members(channel_id, _unique_ids(user_ids))

    def remove_members(self, channel_id: int, user_ids: Iterable[int]) -> int:
        """Remove users from a channel. Returns the number removed."""
        ids = _unique_ids(user_ids)
        if not ids:
            return 0
        cursor = self.conn.execute(
            "DELETE FROM channel_members "  # noqa: S608
            f"WHERE channel_id = ? AND user_id IN ({placeholders(len(ids))})",
            (channel_id, *ids),
        )
        return cursor.rowcount

    def is_channel_member(self, channel_id: int, user_id: int) -> bool:
        """Whether the user may read and post in the channel.

        Everyone may use public channels; group channels require membership.
        """
        row = self.conn.execute(
            """
            SELECT 1
            FROM channels c
            LEFT JOIN channel_members cm
                ON c.id = cm.channel_id AND cm.user_id = ?
            WHERE c.id = ? AND (c.is_group = 0 OR cm.user_id IS NOT NULL)
            """,
            (user_id, channel_id),
        ).fetchone()
        return row is not None

    def _add_members(self, channel_id: int, user_ids: list[int]) -> int:
        added = 0
        for user_id in user_ids:
            cursor = self.conn.execute(
                "INSERT OR IGNORE INTO channel_members (channel_id, user_id) "
                "SELECT ?, id FROM users WHERE id = ?",
                (channel_id, user_id),
            )
            added += cursor.rowcount
        return added

    # -- messages ------------------------------------------------------------

    def list_messages(self, channel_id: int) -> list[ChatMessage]:
        return fetch_all(
            self.conn,
            ChatMessage,
            _MESSAGE_SELECT + " WHERE m1.channel_id = ? ORDER BY m1.id ASC",
            (channel_id,),
        )

    def get_message(self, message_id: int) -> ChatMessage | None:
        return fetch_one(
            self.conn, ChatMessage, _MESSAGE_SELECT + " WHERE m1.id = ?", (message_id,)
        )

    def create_message(
        self,
        channel_id: int,
        user_id: int,
        username: str,
        text: str,
        reply_to_id: int | None = None,
    ) -> ChatMessage:
        """Post a message and return it joined with its reply target.

        Raises:
            StorageConflictError: If the channel or reply target does not exist.
        """
        row = NewMessage(
            channel_id=channel_id,
            user_id=user_id,
            username=username,
            text=text,
            created_at=pendulum.now("UTC").to_iso8601_string(),
            reply_to_id=reply_to_id,
        )
        try:
            message_id = insert(self.conn, "messages", row)
        except sqlite3.IntegrityError as e:
            msg = "Message references a missing channel or reply target"
            raise StorageConflictError(msg) from e
        message = self.get_message(message_id)
        if message is None:
            msg = f"Message {message_id} vanished after insert"
            raise StorageError(msg)
        return message

    def delete_message(self, message_id: int) -> bool:
        cursor = self.conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        return cursor.rowcount > 0

    # -- read receipts -------------------------------------------------------

    def unread_counts(self, user_id: int) -> dict[int, int]:
        """Count messages newer than the user's read marker, per channel."""
        rows = cast(
            "list[sqlite3.Row]",
            self.conn.execute(
                """
                SELECT c.id AS channel_id,
                       (SELECT COUNT(*) FROM messages m
                        WHERE m.channel_id = c.id
                          AND m.id > IFNULL(rr.last_read_message_id, 0)) AS count
                FROM channels c
                LEFT JOIN read_receipts rr
                    ON c.id = rr.channel_id AND rr.user_id = ?
                """,
                (user_id,),
            ).fetchall(),
        )
        return {int(row["channel_id"]): int(row["count"]) for row in rows}

    def mark_read(self, user_id: int, channel_id: int, last_message_id: int) -> None:
        """Record the newest message the user has read in a channel.

        Raises:
            StorageConflictError: If the user or channel does not exist.
        """
        try:
            _ = self.conn.execute(
                """
                INSERT INTO read_receipts (user_id, channel_id, last_read_message_id)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id, channel_id)
                DO UPDATE SET last_read_message_id = excluded.last_read_message_id
                """,
                (user_id, channel_id, last_message_id),
            )
        except sqlite3.IntegrityError as e:
            msg = f"Cannot mark channel {channel_id} read for user {user_id}"
            raise StorageConflictError(msg) from e

    def last_read(self, user_id: int, channel_id: int) -> int:
        row = cast(
            "sqlite3.Row | None",
            self.conn.execute(
                "SELECT last_read_message_id FROM read_receipts "
                "WHERE user_id = ? AND channel_id = ?",
                (user_id, channel_id),
            ).fetchone(),
        )
        return int(row["last_read_message_id"]) if row is not None else 0


@final
class ChatStore:
    """Owns the chat database connection for one running worker episode.

    Repository calls run in worker threads via :meth:`run` and are
    serialized by a lock, so the single connection is never used
    concurrently.
    """

    __slots__ = ("_closed", "_lock", "db", "path")

    def __init__(self, conn: sqlite3.Connection, path: str | Path) -> None:
        self.db = ChatRepository(conn)
        self.path = path
        self._lock = anyio.Lock()
        self._closed = False

    @classmethod
    def connect(cls, path: str | Path) -> Self:
        """Open the database synchronously, creating and seeding the schema.

        Raises:
            StorageOpenError: If the file cannot be opened or initialized.
        """
        try:
            conn = open_connection(path)
        except (sqlite3.Error, OSError) as e:
            msg = f"Cannot open chat database at {path}: {e}"
            raise StorageOpenError(msg, path=path, cause=e) from e

        try:
            with transaction(conn):
                initialize_schema(conn)
        except sqlite3.Error as e:
            conn.close()
            msg = f"Cannot initialize chat database at {path}: {e}"
            raise StorageOpenError(msg, path=path, cause=e) from e
        return cls(conn, path)

    @classmethod
    async def open(cls, path: str | Path) -> Self:
        """Open the database in a worker thread. See :meth:`connect`."""
        return await anyio.to_thread.run_sync(cls.connect, path)

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(
        self, func: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs
    ) -> T:
        """Run a blocking repository call in a worker thread.

        Raises:
            StorageError: If the store has been closed.
        """
        async with self._lock:
            if self._closed:
                msg = "Chat store is closed"
                raise StorageError(msg)
            return await anyio.to_thread.run_sync(
                functools.partial(func, *args, **kwargs)
            )

    async def aclose(self) -> None:
        """Close the connection.

        Marks the store closed first, so a caller that abandons a slow close
        can still treat the store as released.
        """
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            await anyio.to_thread.run_sync(
                self.db.conn.close, abandon_on_cancel=True
            )
