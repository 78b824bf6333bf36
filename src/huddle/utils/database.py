"""SQLite database utilities for Pydantic models.

This module provides connection management and simple query helpers for
SQLite databases, using Pydantic models for deserialization.

Note:
    Fields with ``None`` values are excluded from INSERT operations via
    ``exclude_none=True``. Column defaults apply to omitted fields.
"""

import re
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import TypeAlias, TypeVar, cast

from pydantic import BaseModel

# Valid SQL identifier pattern (alphanumeric and underscores, not starting with digit)
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# SQLite-compatible value types
SQLValue: TypeAlias = str | int | float | bytes | None

T = TypeVar("T", bound=BaseModel)


def _is_file_path(path: str | Path) -> bool:
    return str(path) != ":memory:" and not str(path).startswith("file:")


def open_connection(
    path: str | Path,
    *,
    timeout: float = 30.0,
    check_same_thread: bool = False,
    foreign_keys: bool = True,
    wal_mode: bool = True,
) -> sqlite3.Connection:
    """Open a long-lived SQLite connection in autocommit mode.

    Creates parent directories for file databases. Transactions are managed
    explicitly with :func:`transaction`.

    Args:
        path: Database file path, or ``:memory:`` for in-memory database.
        timeout: Seconds to wait for lock before raising OperationalError.
        check_same_thread: If True, only the creating thread may use the
            connection. Defaults to False because callers hop between worker
            threads.
        foreign_keys: If True, enforce foreign key constraints.
        wal_mode: If True, enable WAL journal mode for better concurrency.

    Returns:
        SQLite connection with row_factory set to sqlite3.Row.

    Raises:
        sqlite3.Error: If the database cannot be opened.
        OSError: If the parent directory cannot be created.
    """
    if _is_file_path(path):
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(path),
        timeout=timeout,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row

    try:
        if foreign_keys:
            _ = conn.execute("PRAGMA foreign_keys = ON")
        if wal_mode and _is_file_path(path):
            with suppress(sqlite3.OperationalError):
                _ = conn.execute("PRAGMA journal_mode=WAL")
            _ = conn.execute("PRAGMA busy_timeout=10000")
    except BaseException:
        conn.close()
        raise

    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside an IMMEDIATE transaction.

    Commits on success; on any exception rolls back and re-raises.

    Examples:
        >>> with transaction(conn):
        ...     conn.execute("INSERT INTO records (name) VALUES (?)", ("first",))
    """
    _ = conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        with suppress(sqlite3.Error):
            _ = conn.execute("ROLLBACK")
        raise
    else:
        _ = conn.execute("COMMIT")


def safe_identifier(name: str) -> str:
    """Validate and quote a SQL identifier.

    Args:
        name: The identifier to validate and quote.

    Returns:
        The quoted identifier (e.g., ``"users"``).

    Raises:
        ValueError: If the identifier contains invalid characters.

    Examples:
        >>> safe_identifier("users")
        '"users"'
        >>> safe_identifier("123abc")
        Traceback (most recent call last):
            ...
        ValueError: Invalid SQL identifier: '123abc'
    """
    if not _IDENTIFIER_RE.match(name):
        msg = f"Invalid SQL identifier: {name!r}"
        raise ValueError(msg)
    return f'"{name}"'


def placeholders(count: int) -> str:
    """Return a comma-separated list of ``count`` positional placeholders."""
    return ", ".join("?" for _ in range(count))


def fetch_one(
    conn: sqlite3.Connection,
    model: type[T],
    sql: str,
    params: tuple[SQLValue, ...] = (),
) -> T | None:
    """Fetch a single row and return it as a Pydantic model.

    Args:
        conn: SQLite connection.
        model: Pydantic model class to deserialize into.
        sql: SQL query string.
        params: Query parameters.

    Returns:
        Model instance or None if no row found.
    """
    row = cast("sqlite3.Row | None", conn.execute(sql, params).fetchone())
    if row is None:
        return None
    return model.model_validate(dict(row))


def fetch_all(
    conn: sqlite3.Connection,
    model: type[T],
    sql: str,
    params: tuple[SQLValue, ...] = (),
) -> list[T]:
    """Fetch all rows and return them as Pydantic models.

    Args:
        conn: SQLite connection.
        model: Pydantic model class to deserialize into.
        sql: SQL query string.
        params: Query parameters.

    Returns:
        List of model instances (empty if no rows).
    """
    rows = cast("list[sqlite3.Row]", conn.execute(sql, params).fetchall())
    return [model.model_validate(dict(row)) for row in rows]


def insert(
    conn: sqlite3.Connection,
    table: str,
    obj: BaseModel,
    exclude: set[str] | None = None,
    *,
    or_ignore: bool = False,
) -> int:
    """Insert a model into a table.

    Args:
        conn: SQLite connection.
        table: Table name.
        obj: Pydantic model to insert.
        exclude: Field names to exclude from the insert.
        or_ignore: Use ``INSERT OR IGNORE`` so conflicting rows are skipped.

    Returns:
        The lastrowid of the inserted row, or 0 if nothing was inserted.
    """
    table = safe_identifier(table)
    data = obj.model_dump(exclude=exclude or set(), exclude_none=True)
    cols = ", ".join(safe_identifier(k) for k in data)
    values = ", ".join(f":{k}" for k in data)
    verb = "INSERT OR IGNORE" if or_ignore else "INSERT"
    cursor = conn.execute(
        f"{verb} INTO {table} ({cols}) VALUES ({values})",  # noqa: S608
        data,
    )
    if cursor.rowcount == 0:
        return 0
    return cursor.lastrowid or 0
