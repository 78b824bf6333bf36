"""Row models for the chat database."""

from dataclasses import dataclass

from pydantic import BaseModel


class UserRecord(BaseModel):
    """A stored user, including the password hash."""

    id: int
    username: str
    password: str


class UserSummary(BaseModel):
    """Public view of a user."""

    id: int
    username: str


class Channel(BaseModel):
    """A chat channel.

    Attributes:
        id: Primary key.
        name: Unique channel name.
        is_deletable: False for the seeded default channels.
        is_group: True for member-restricted group channels.
        creator_id: User who created a group channel, if any.
    """

    id: int
    name: str
    is_deletable: bool = True
    is_group: bool = False
    creator_id: int | None = None


class ChatMessage(BaseModel):
    """A posted message, joined with the message it replies to."""

    id: int
    channel_id: int
    user_id: int | None
    username: str
    text: str
    created_at: str
    reply_to_id: int | None = None
    replied_to_username: str | None = None
    replied_to_text: str | None = None


class NewMessage(BaseModel):
    """Insert payload for the messages table."""

    channel_id: int
    user_id: int
    username: str
    text: str
    created_at: str
    reply_to_id: int | None = None


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of a bulk user import.

    Attributes:
        imported: Rows inserted.
        skipped: Rows ignored because the id already existed or the row was
            incomplete.
    """

    imported: int
    skipped: int
