"""Chat persistence on SQLite."""

from ._import import parse_users_csv
from ._models import (
    Channel,
    ChatMessage,
    ImportResult,
    NewMessage,
    UserRecord,
    UserSummary,
)
from ._schema import DEFAULT_CHANNELS, initialize_schema
from ._store import ChatRepository, ChatStore

__all__ = [
    "DEFAULT_CHANNELS",
    "Channel",
    "ChatMessage",
    "ChatRepository",
    "ChatStore",
    "ImportResult",
    "NewMessage",
    "UserRecord",
    "UserSummary",
    "initialize_schema",
    "parse_users_csv",
]
