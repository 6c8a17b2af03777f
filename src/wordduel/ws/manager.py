"""WebSocket connection manager.

Tracks all active WebSocket connections, keyed by profile, and their channel
subscriptions. Handles fan-out of messages to subscribed clients.
"""

import json
import re
import time
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from fastapi import WebSocket

from wordduel.config import get_settings

logger = structlog.get_logger()

VALID_CHANNELS = {"matches", "social", "teams", "gamification"}

# Spectator channels, one per match: "match:{id}"
MATCH_CHANNEL = re.compile(r"^match:(\d+)$")


def match_id_of(channel: str) -> int | None:
    found = MATCH_CHANNEL.match(channel)
    return int(found.group(1)) if found else None


def is_valid_channel(channel: str) -> bool:
    return channel in VALID_CHANNELS or match_id_of(channel) is not None


@dataclass
class ClientConnection:
    """Represents a single WebSocket client."""

    websocket: WebSocket
    profile_id: int
    subscriptions: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Manages all active WebSocket connections.

    Safe for asyncio via the single-threaded event loop.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._channels: dict[str, set[str]] = defaultdict(set)  # channel -> {conn_ids}
        self._profile_connections: dict[int, set[str]] = defaultdict(set)  # profile_id -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def is_connected(self, profile_id: int) -> bool:
        return bool(self._profile_connections.get(profile_id))

    async def connect(self, websocket: WebSocket, conn_id: str, profile_id: int) -> bool:
        """Accept a new connection. Returns False if the profile is at its connection limit."""
        limit = get_settings().ws_max_connections_per_user
        if len(self._profile_connections.get(profile_id, ())) >= limit:
            await websocket.close(code=4008, reason="Too many connections")
            logger.warning("ws_connection_limit", profile_id=profile_id)
            return False

        await websocket.accept()
        self._connections[conn_id] = ClientConnection(websocket=websocket, profile_id=profile_id)
        self._profile_connections[profile_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, profile_id=profile_id)
        return True

    async def disconnect(self, conn_id: str) -> None:
        """Remove a WebSocket connection and its subscriptions."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        for channel in client.subscriptions:
            self._leave(channel, conn_id)

        self._profile_connections[client.profile_id].discard(conn_id)
        if not self._profile_connections[client.profile_id]:
            del self._profile_connections[client.profile_id]

        logger.info("ws_disconnected", conn_id=conn_id, profile_id=client.profile_id)

    async def subscribe(self, conn_id: str, channel: str) -> bool:
        """Subscribe a connection to a channel. Returns False if invalid."""
        client = self._connections.get(conn_id)
        if client is None or not is_valid_channel(channel):
            return False

        client.subscriptions.add(channel)
        self._channels[channel].add(conn_id)
        logger.debug("ws_subscribed", conn_id=conn_id, channel=channel)
        return True

    async def unsubscribe(self, conn_id: str, channel: str) -> bool:
        """Unsubscribe a connection from a channel."""
        client = self._connections.get(conn_id)
        if client is None:
            return False

        client.subscriptions.discard(channel)
        self._leave(channel, conn_id)
        return True

    def _leave(self, channel: str, conn_id: str) -> None:
        members = self._channels.get(channel)
        if members is None:
            return
        members.discard(conn_id)
        # Match channels are short-lived, so empty ones are dropped
        if not members:
            del self._channels[channel]

    async def _send(self, conn_ids: list[str], payload: str) -> int:
        sent = 0
        failed: list[str] = []
        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                failed.append(conn_id)
                continue
            try:
                await client.websocket.send_text(payload)
                client.messages_sent += 1
                sent += 1
            except Exception:
                failed.append(conn_id)

        for conn_id in failed:
            await self.disconnect(conn_id)
        return sent

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send a message to all clients subscribed to a channel.

        Returns the number of clients that received the message.
        """
        conn_ids = list(self._channels.get(channel, set()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps({"channel": channel, "data": message}, default=str))

    async def send_to_profile_direct(self, profile_id: int, message: dict) -> int:
        """Send a personal message to every connection of a profile, regardless of subscriptions."""
        conn_ids = list(self._profile_connections.get(profile_id, set()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps(message, default=str))

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "unique_profiles": len(self._profile_connections),
            "channels": {ch: len(conns) for ch, conns in self._channels.items() if conns},
        }


# Global singleton
manager = ConnectionManager()
