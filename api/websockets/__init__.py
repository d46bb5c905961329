"""WebSocket endpoint for real-time notifications.

Clients send JSON messages:
    {"type": "join", "token": "<JWT>"}  subscribe to the token user's channel
    {"type": "ping"}                    liveness check

and receive ``{"type", "data", "timestamp"}`` messages: ``joined``, ``pong``,
``error`` in reply, ``notification`` and ``food_shared`` as they happen.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from auth import authenticate, AuthError
from realtime import make_message

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["WebSocket"])


async def handle_message(websocket: WebSocket, connection_id: str, data: str, services) -> None:
    """Answer a single client message."""
    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        await websocket.send_json(make_message("error", {"message": "Invalid JSON"}))
        return
    if not isinstance(message, dict):
        await websocket.send_json(make_message("error", {"message": "Invalid message"}))
        return

    message_type = message.get("type")
    if message_type == "ping":
        await websocket.send_json(make_message("pong", {}))
    elif message_type == "join":
        try:
            user = await authenticate(message.get("token"), services.users, services.settings)
        except AuthError as e:
            await websocket.send_json(make_message("error", {"message": str(e)}))
            return
        services.notifier.join_user_channel(connection_id, user['id'])
        await websocket.send_json(make_message("joined", {"user_id": user['id']}))
    else:
        await websocket.send_json(
            make_message("error", {"message": f"Unknown message type: {message_type}"})
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Realtime channel for notifications and newly shared food."""
    services = websocket.app.state.services
    notifier = services.notifier

    await websocket.accept()
    connection_id = notifier.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            await handle_message(websocket, connection_id, data, services)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error on connection {connection_id}: {e}", exc_info=True)
        try:
            await websocket.close(code=1011)
        except RuntimeError:
            # Already closed by the client or the server
            pass
    finally:
        notifier.disconnect(connection_id)


# Export the router
__all__ = ['router']
