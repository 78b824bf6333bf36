"""Broadcast envelopes pushed to realtime connections."""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Self, TypeAlias


class EnvelopeType(StrEnum):
    """Envelope variants understood by clients."""

    NEW_MESSAGE = "new_message"
    MESSAGE_DELETED = "message_deleted"
    CHANNEL_CREATED = "channel_created"
    CHANNEL_UPDATED = "channel_updated"
    CHANNEL_DELETED = "channel_deleted"
    MEMBERS_UPDATED = "members_updated"
    USER_LIST_UPDATE = "user_list_update"
    REFETCH_CHANNELS = "refetch_channels"


Payload: TypeAlias = Mapping[str, object] | Sequence[object] | None


@dataclass(frozen=True, slots=True)
class BroadcastEnvelope:
    """An immutable ``{type, payload}`` value.

    The payload must be JSON-serializable. It is rendered once per delivery
    call by :meth:`to_frame` and the same frame is sent to every recipient.
    """

    type: EnvelopeType
    payload: Payload = None

    def to_frame(self) -> str:
        """Render the envelope as a JSON text frame."""
        return json.dumps(
            {"type": self.type.value, "payload": self.payload},
            separators=(",", ":"),
            default=str,
        )

    @classmethod
    def new_message(cls, message: Mapping[str, object]) -> Self:
        return cls(EnvelopeType.NEW_MESSAGE, dict(message))

    @classmethod
    def message_deleted(cls, message_id: int, channel_id: int | None = None) -> Self:
        return cls(
            EnvelopeType.MESSAGE_DELETED, {"id": message_id, "channel_id": channel_id}
        )

    @classmethod
    def channel_created(cls, channel: Mapping[str, object]) -> Self:
        return cls(EnvelopeType.CHANNEL_CREATED, dict(channel))

    @classmethod
    def channel_updated(cls, channel: Mapping[str, object]) -> Self:
        return cls(EnvelopeType.CHANNEL_UPDATED, dict(channel))

    @classmethod
    def channel_deleted(cls, channel_id: int) -> Self:
        return cls(EnvelopeType.CHANNEL_DELETED, {"id": channel_id})

    @classmethod
    def members_updated(cls, channel_id: int) -> Self:
        return cls(EnvelopeType.MEMBERS_UPDATED, {"channel_id": channel_id})

    @classmethod
    def user_list_update(cls, identity_keys: Sequence[str]) -> Self:
        return cls(EnvelopeType.USER_LIST_UPDATE, list(identity_keys))

    @classmethod
    def refetch_channels(cls) -> Self:
        return cls(EnvelopeType.REFETCH_CHANNELS)
