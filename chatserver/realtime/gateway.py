"""
WebSocket Gateway
=================

Per-socket handler for the realtime chat endpoint.

Lifecycle of one connection:
    UPGRADING -> REGISTERED -> (READING <-> DISPATCHING) -> CLOSING -> TERMINAL

Authentication:
    - Provide a session token via query parameter: /ws?token=YOUR_JWT
    - OR via Authorization header: "Bearer YOUR_JWT"
    When WS_REQUIRE_AUTH is off, sockets without a token are accepted
    anonymously; a token that is present must still be valid.

Every inbound frame is first echoed to all live connections through the hub
and then dispatched. A frame that fails to dispatch is answered with
{"status": "error", "kind": ..., "message": ...} and the read loop carries on.
Only a read error (including a normal close) ends the connection.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Header, Query, Request, WebSocket, status

from ..auth.session import verify_token
from ..errors import ChatError, Internal, Unauthorized
from .hub import Connection

logger = logging.getLogger("chatserver.realtime.gateway")

# Router instance
realtime_router = APIRouter()


async def authenticate_websocket(
    websocket: WebSocket,
    token: Optional[str] = None,
    authorization: Optional[str] = None,
) -> Optional[ObjectId]:
    """
    Resolve the user a socket speaks for.

    Returns:
        The user id, or None for an accepted anonymous socket

    Raises:
        Unauthorized: If authentication is required and missing, or a
            supplied token is invalid
    """
    settings = websocket.app.state.settings

    # Query parameter first, then Authorization header
    auth_token = token
    if not auth_token and authorization:
        if authorization.lower().startswith("bearer "):
            auth_token = authorization[7:].strip()
        else:
            auth_token = authorization

    if not auth_token:
        if settings.WS_REQUIRE_AUTH:
            raise Unauthorized("Authentication required")
        return None

    return verify_token(auth_token, settings)


async def read_frame(websocket: WebSocket) -> Optional[str]:
    """
    Read one frame as text.

    Returns:
        The frame text, or None once the peer has gone away
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        return None

    text = message.get("text")
    if text is None:
        data = message.get("bytes") or b""
        text = data.decode("utf-8", errors="replace")
    return text


@realtime_router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    authorization: Optional[str] = Header(None),
):
    """
    Realtime chat endpoint.

    Client Frames:
        - {"action": "create_conversation", "senderId": "...", "receiverId": "..."}
        - {"action": "get_conversationById", "_id": "..."}
        - {"action": "send_message", "conversationId": "...", "senderId": "...", "message": "..."}

    Server Frames:
        - the raw text of every inbound frame, echoed to all live sockets
        - {"status": "success", "conversation": {...}}
        - {"conversation": {...}, "sender": {...}, "receiver": {...}}
        - {"status": "success", "message": {...}}
        - {"status": "error", "kind": "...", "message": "..."}
    """
    state = websocket.app.state
    hub = state.hub
    dispatcher = state.dispatcher

    try:
        user_id = await authenticate_websocket(websocket, token, authorization)
    except Unauthorized as e:
        logger.warning(f"WebSocket connection rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    try:
        await websocket.accept()
    except Exception as e:
        logger.error(f"Error upgrading to WebSocket: {str(e)}")
        return

    connection = Connection(
        websocket,
        user_id=user_id,
        queue_size=state.settings.WS_SEND_QUEUE_SIZE,
    )
    connection.start(on_failure=hub.unregister)
    await hub.register(connection)

    try:
        while True:
            try:
                frame = await read_frame(websocket)
            except Exception as e:
                logger.info(f"Error reading message: {str(e)}", extra={"connection_id": connection.id})
                frame = None

            if frame is None:
                break

            await hub.broadcast(frame)

            try:
                await dispatcher.dispatch(connection, frame)
            except ChatError as e:
                await _report(connection, e)
            except Exception as e:
                logger.error(
                    f"Unexpected error processing message: {str(e)}",
                    extra={"connection_id": connection.id},
                    exc_info=True,
                )
                await _report(connection, Internal("Internal error processing message"))

    finally:
        await hub.unregister(connection)
        await connection.close()


async def _report(connection: Connection, error: ChatError) -> None:
    logger.error(
        f"Error processing message: {error.message}",
        extra={"connection_id": connection.id, "kind": error.kind},
    )
    await connection.send_json(error.to_frame())


@realtime_router.get("/realtime/status")
async def realtime_status(request: Request) -> Dict[str, Any]:
    """Live connection statistics."""
    hub = request.app.state.hub
    return {
        "status": "ok" if hub.running else "stopped",
        "active_connections": hub.connection_count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
