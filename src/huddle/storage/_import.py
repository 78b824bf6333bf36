"""Bulk user import from CSV text."""

import io

import polars as pl

from huddle.exceptions import StorageError

REQUIRED_COLUMNS = ("id", "username", "password")


def parse_users_csv(text: str) -> tuple[list[tuple[int, str, str]], int]:
    """Parse ``id,username,password`` CSV text.

    Rows with a non-integer id or an empty username or password are dropped.

    Returns:
        The valid ``(id, username, password)`` rows and the number dropped.

    Raises:
        StorageError: If the text is not CSV or lacks a required column.
    """
    try:
        frame = pl.read_csv(io.StringIO(text), infer_schema=False)
    except (pl.exceptions.PolarsError, ValueError) as e:
        msg = f"Unreadable CSV: {e}"
        raise StorageError(msg) from e

    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        msg = f"CSV is missing required column(s): {', '.join(missing)}"
        raise StorageError(msg)

    rows: list[tuple[int, str, str]] = []
    dropped = 0
    for record in frame.select(list(REQUIRED_COLUMNS)).iter_rows(named=True):
        raw_id = (record["id"] or "").strip()
        username = (record["username"] or "").strip()
        password = record["password"] or ""
        if not raw_id.isdigit() or not username or not password:
            dropped += 1
            continue
        rows.append((int(raw_id), username, password))
    return rows, dropped
