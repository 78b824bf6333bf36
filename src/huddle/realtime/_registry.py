"""Live connection registry and broadcaster.

The registry maps identity keys to at most one live connection handle.
Delivery is best-effort: each send is a non-blocking enqueue on the
handle's own outbound queue, and a failure on one handle is logged and
skipped without affecting the others.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, final, runtime_checkable

import pendulum
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.auth import Identity  # noqa: TC001
from huddle.utils import get_fallback_logger

from ._envelope import BroadcastEnvelope

SUPERSEDED_CLOSE_CODE = 4000
GOING_AWAY_CLOSE_CODE = 1001


@runtime_checkable
class ConnectionHandle(Protocol):
    """Outbound side of one live connection."""

    def send_nowait(self, frame: str) -> None:
        """Enqueue a text frame without waiting.

        Raises:
            anyio.WouldBlock: If the outbound queue is full.
            anyio.ClosedResourceError: If the connection is closing.
        """
        ...

    def close_nowait(self, code: int, reason: str = "") -> None:
        """Request the connection be closed with ``code`` after pending frames."""
        ...

    async def wait_closed(self) -> None:
        """Wait until the connection has fully closed."""
        ...


@dataclass(frozen=True, slots=True)
class ConnectionEntry:
    """A registered connection.

    Attributes:
        identity: The principal the connection authenticated as.
        handle: The connection's outbound handle.
        connected_at: ISO 8601 timestamp of registration.
    """

    identity: Identity
    handle: ConnectionHandle
    connected_at: str


@final
class ConnectionRegistry:
    """Tracks live authenticated connections and fans envelopes out to them.

    A second registration for the same identity replaces the first, and the
    superseded handle is closed with code 4000. Every change to the live set
    is followed by a ``user_list_update`` broadcast while the registry still
    accepts connections.
    """

    __slots__ = ("_accepting", "_closing", "_entries", "_logger")

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._entries: dict[str, ConnectionEntry] = {}
        self._closing: list[ConnectionHandle] = []
        self._accepting = True
        self._logger: FilteringBoundLogger = logger or get_fallback_logger()

    @property
    def accepting(self) -> bool:
        """Whether new connections may still be registered."""
        return self._accepting

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, identity_key: str) -> ConnectionEntry | None:
        """Return the live entry for an identity key, if any."""
        return self._entries.get(identity_key)

    def presence(self) -> list[str]:
        """Return the identity keys of every live connection."""
        return list(self._entries)

    def online_users(self) -> list[Identity]:
        """Return the identities of every live connection."""
        return [entry.identity for entry in self._entries.values()]

    def register(self, identity: Identity, handle: ConnectionHandle) -> bool:
        """Register a connection, superseding any previous one for the identity.

        Returns:
            True if registered, False if the registry is shutting down.
        """
        if not self._accepting:
            self._close(handle, GOING_AWAY_CLOSE_CODE, "server shutting down")
            return False

        previous = self._entries.get(identity.key)
        self._entries[identity.key] = ConnectionEntry(
            identity=identity,
            handle=handle,
            connected_at=pendulum.now("UTC").to_iso8601_string(),
        )
        if previous is not None and previous.handle is not handle:
            self._logger.info("connection_superseded", identity=identity.key)
            self._close(previous.handle, SUPERSEDED_CLOSE_CODE, "superseded")

        self._logger.debug("connection_registered", identity=identity.key)
        self._broadcast_presence()
        return True

    def unregister(self, identity_key: str, handle: ConnectionHandle) -> bool:
        """Remove a connection if it is still the current one for its identity.

        Returns:
            True if the entry was removed, False if it was stale or absent.
        """
        entry = self._entries.get(identity_key)
        if entry is None or entry.handle is not handle:
            return False

        del self._entries[identity_key]
        self._logger.debug("connection_unregistered", identity=identity_key)
        self._broadcast_presence()
        return True

    def broadcast(self, envelope: BroadcastEnvelope) -> int:
        """Deliver an envelope to every connection registered right now.

        Returns:
            The number of handles the frame was enqueued on.
        """
        return self._deliver(list(self._entries.values()), envelope)

    def notify(self, identity_keys: Iterable[str], envelope: BroadcastEnvelope) -> int:
        """Deliver an envelope to the live subset of the given identities.

        Returns:
            The number of handles the frame was enqueued on.
        """
        entries = [
            entry
            for key in dict.fromkeys(identity_keys)
            if (entry := self._entries.get(key)) is not None
        ]
        return self._deliver(entries, envelope)

    def shutdown(
        self,
        code: int = GOING_AWAY_CLOSE_CODE,
        reason: str = "server shutting down",
    ) -> None:
        """Stop accepting connections and close every live one."""
        self._accepting = False
        entries = list(self._entries.values())
        self._entries.clear()
        self._logger.info("registry_shutdown", connections=len(entries), code=code)
        for entry in entries:
            self._closing.append(entry.handle)
            self._close(entry.handle, code, reason)

    async def wait_closed(self) -> None:
        """Wait for every connection closed by :meth:`shutdown` to finish."""
        while self._closing:
            handle = self._closing.pop()
            await handle.wait_closed()

    def _deliver(self, entries: list[ConnectionEntry], envelope: BroadcastEnvelope) -> int:
        if not entries:
            return 0

        frame = envelope.to_frame()
        delivered = 0
        for entry in entries:
            try:
                entry.handle.send_nowait(frame)
            except Exception as e:  # noqa: BLE001
                self._logger.warning(
                    "delivery_failed",
                    identity=entry.identity.key,
                    envelope=envelope.type.value,
                    error=repr(e),
                )
            else:
                delivered += 1
        return delivered

    def _broadcast_presence(self) -> None:
        if self._accepting:
            _ = self.broadcast(BroadcastEnvelope.user_list_update(self.presence()))

    def _close(self, handle: ConnectionHandle, code: int, reason: str) -> None:
        try:
            handle.close_nowait(code, reason)
        except Exception as e:  # noqa: BLE001
            self._logger.warning("close_failed", code=code, error=repr(e))
