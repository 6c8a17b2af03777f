"""Bridges Redis pub/sub to WebSocket clients.

Game services publish personal events on ``ws:user:{profile_id}``, match
progress for spectators on ``pubsub:match:{match_id}`` and global events on
the broadcast channels below. This bridge fans them out to the connected
clients.
"""

import asyncio
import json

import redis.asyncio as aioredis
import structlog

from wordduel.ws.manager import manager, match_id_of

logger = structlog.get_logger()

# Map Redis pub/sub channels to WebSocket channels
CHANNEL_MAP: dict[str, str] = {
    "pubsub:match_update": "matches",
    "pubsub:leaderboard_update": "matches",
    "pubsub:team_update": "teams",
    "pubsub:badge_earned": "gamification",
    "pubsub:level_up": "gamification",
}

USER_PATTERN = "ws:user:*"
MATCH_PATTERN = "pubsub:match:*"


async def dispatch(redis_channel: str, msg_type: str, data: str | bytes) -> int:
    """Route one pub/sub message. Returns the number of connections reached."""
    try:
        if isinstance(data, bytes):
            data = data.decode()
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("pubsub_invalid_message", channel=redis_channel)
        return 0

    # ── Per-profile messages (pattern match on ws:user:*) ──
    if msg_type == "pmessage" and redis_channel.startswith("ws:user:"):
        try:
            profile_id = int(redis_channel.split(":")[-1])
        except ValueError:
            logger.warning("pubsub_invalid_profile_id", channel=redis_channel)
            return 0
        sent = await manager.send_to_profile_direct(profile_id, {
            "type": payload.get("event", "notification"),
            "payload": payload.get("data", payload),
        })
        if sent > 0:
            logger.debug("profile_event_sent", profile_id=profile_id, recipients=sent)
        return sent

    # ── Spectator messages (pattern match on pubsub:match:*) ──
    if msg_type == "pmessage" and redis_channel.startswith("pubsub:match:"):
        ws_channel = redis_channel.removeprefix("pubsub:")
        if match_id_of(ws_channel) is None:
            logger.warning("pubsub_invalid_match_id", channel=redis_channel)
            return 0
        event = payload.pop("event", "match_update")
        return await manager.broadcast_to_channel(ws_channel, {"type": event, **payload})

    # ── Broadcast messages (exact channel match) ──
    ws_channel = CHANNEL_MAP.get(redis_channel)
    if ws_channel is None:
        return 0
    sent = await manager.broadcast_to_channel(ws_channel, {
        "type": redis_channel.split(":")[-1],
        **payload,
    })
    if sent > 0:
        logger.debug("pubsub_broadcast", channel=ws_channel, recipients=sent)
    return sent


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self.redis = redis_client
        self._running = False

    async def start(self) -> None:
        """Listen until stopped or cancelled."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(*CHANNEL_MAP.keys())
        await pubsub.psubscribe(USER_PATTERN, MATCH_PATTERN)
        logger.info(
            "pubsub_bridge_started", channels=list(CHANNEL_MAP.keys()), patterns=[USER_PATTERN, MATCH_PATTERN]
        )

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                redis_channel = message.get("channel", "")
                if isinstance(redis_channel, bytes):
                    redis_channel = redis_channel.decode()
                await dispatch(redis_channel, message.get("type", ""), message.get("data", b""))
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
