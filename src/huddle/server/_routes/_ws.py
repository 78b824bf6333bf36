"""Realtime WebSocket endpoint.

Clients connect to ``/`` or ``/ws`` with ``?token=``. A connection whose
token is missing, invalid or expired is closed with 1008 before any
envelope is sent.
"""

from fastapi import APIRouter, WebSocket, status

from huddle.exceptions import AuthError
from huddle.realtime import GOING_AWAY_CLOSE_CODE, WebSocketConnection
from huddle.server._deps import get_context

router = APIRouter(prefix="", tags=["realtime"])


@router.websocket("/")
@router.websocket("/ws")
async def realtime(websocket: WebSocket, token: str | None = None) -> None:
    context = get_context(websocket)
    await websocket.accept()

    try:
        identity = context.gate.authenticate_token(token)
    except AuthError as e:
        context.logger.info("websocket_rejected", reason=str(e), code=e.code.value)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return

    if not context.registry.accepting:
        await websocket.close(code=GOING_AWAY_CLOSE_CODE, reason="server shutting down")
        return

    connection = WebSocketConnection(
        websocket, max_pending=context.max_pending_frames, logger=context.logger
    )
    if not context.registry.register(identity, connection):
        await connection.run()
        return

    context.logger.info("websocket_connected", identity=identity.key)
    try:
        await connection.run()
    finally:
        removed = context.registry.unregister(identity.key, connection)
        context.logger.info(
            "websocket_disconnected", identity=identity.key, current=removed
        )
