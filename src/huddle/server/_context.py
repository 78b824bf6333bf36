"""Per-episode state shared by every route."""

from dataclasses import dataclass

from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.auth import AuthGate  # noqa: TC001
from huddle.realtime import ConnectionRegistry  # noqa: TC001
from huddle.storage import ChatStore  # noqa: TC001


@dataclass(frozen=True, slots=True)
class ServerContext:
    """Collaborators of one running worker episode.

    Attributes:
        store: Open chat database.
        registry: Live WebSocket connections.
        gate: Token verification bound to the episode's secret.
        logger: Worker logger.
        max_pending_frames: Outbound queue bound for each WebSocket.
    """

    store: ChatStore
    registry: ConnectionRegistry
    gate: AuthGate
    logger: FilteringBoundLogger
    max_pending_frames: int = 256
