"""Realtime fan-out: envelopes, connection registry and WebSocket handles."""

from ._connection import DEFAULT_MAX_PENDING, WebSocketConnection
from ._envelope import BroadcastEnvelope, EnvelopeType
from ._registry import (
    GOING_AWAY_CLOSE_CODE,
    SUPERSEDED_CLOSE_CODE,
    ConnectionEntry,
    ConnectionHandle,
    ConnectionRegistry,
)

__all__ = [
    "DEFAULT_MAX_PENDING",
    "GOING_AWAY_CLOSE_CODE",
    "SUPERSEDED_CLOSE_CODE",
    "BroadcastEnvelope",
    "ConnectionEntry",
    "ConnectionHandle",
    "ConnectionRegistry",
    "EnvelopeType",
    "WebSocketConnection",
]
