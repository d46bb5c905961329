"""Realtime delivery of notifications and broadcasts.

Connections are anything with an async ``send_json`` (a FastAPI WebSocket in
the API). A connection may join the channel of exactly one user; joining
again moves it to the new channel. Every message sent has the shape:

    {"type": <event>, "data": <payload>, "timestamp": <iso timestamp>}

Sends run concurrently and each is bounded by ``send_timeout``. Connections
that fail or stall while receiving a message are dropped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Set, Optional, Any
from uuid import uuid4

logger = logging.getLogger(__name__)


def make_message(event: str, payload: Any) -> Dict[str, Any]:
    return {
        "type": event,
        "data": payload,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


class RealtimeNotifier:
    """Tracks live connections and the user channel each one joined."""

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self.connections: Dict[str, Any] = {}
        self.channels: Dict[str, Set[str]] = {}
        self.memberships: Dict[str, str] = {}

    def connect(self, handle) -> str:
        """Register a connection and return its id."""
        connection_id = str(uuid4())
        self.connections[connection_id] = handle
        logger.info(f"Realtime connection {connection_id} opened")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and its channel membership."""
        self._leave(connection_id)
        if self.connections.pop(connection_id, None) is not None:
            logger.info(f"Realtime connection {connection_id} closed")

    def join_user_channel(self, connection_id: str, user_id: str) -> None:
        """Subscribe a connection to user_id, replacing any earlier channel.

        Raises:
            KeyError: If the connection is not registered
        """
        if connection_id not in self.connections:
            raise KeyError(f"Unknown connection: {connection_id}")
        self._leave(connection_id)
        self.channels.setdefault(user_id, set()).add(connection_id)
        self.memberships[connection_id] = user_id
        logger.info(f"Connection {connection_id} joined channel of user {user_id}")

    def channel_of(self, connection_id: str) -> Optional[str]:
        return self.memberships.get(connection_id)

    def _leave(self, connection_id: str) -> None:
        user_id = self.memberships.pop(connection_id, None)
        if user_id is None:
            return
        members = self.channels.get(user_id)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self.channels[user_id]

    async def _send_one(self, connection_id: str, handle, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(handle.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.error(f"Send to connection {connection_id} timed out after {self.send_timeout}s")
        except Exception as e:
            logger.error(f"Failed to send to connection {connection_id}: {e}")
        return False

    async def _send(self, connection_ids, message: Dict[str, Any]) -> int:
        targets = [
            (connection_id, self.connections[connection_id])
            for connection_id in connection_ids
            if connection_id in self.connections
        ]
        results = await asyncio.gather(*(
            self._send_one(connection_id, handle, message)
            for connection_id, handle in targets
        ))

        # Stalled and failed connections are dropped
        for (connection_id, _), delivered in zip(targets, results):
            if not delivered:
                self.disconnect(connection_id)
        return sum(results)

    async def push_to_user(self, user_id: str, event: str, payload: Any) -> int:
        """Send to every connection in the user's channel.

        Returns:
            Number of connections reached; 0 when the user is offline
        """
        members = list(self.channels.get(str(user_id), ()))
        if not members:
            return 0
        return await self._send(members, make_message(event, payload))

    async def broadcast_all(self, event: str, payload: Any) -> int:
        """Send to every open connection, joined or not."""
        return await self._send(list(self.connections), make_message(event, payload))


__all__ = ['RealtimeNotifier', 'make_message']
