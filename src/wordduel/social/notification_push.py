"""Publish realtime events over Redis pub/sub for per-user WebSocket delivery.

The bridge pattern-subscribes to ``ws:user:*`` and routes each message to
every live connection of that profile. Publishing never fails the caller:
errors are logged and swallowed so a Redis outage cannot roll back gameplay.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def user_channel(profile_id: int) -> str:
    return f"ws:user:{profile_id}"


async def publish_to_profile(
    redis: object | None,
    profile_id: int,
    event: str,
    data: dict[str, Any],
) -> bool:
    """Publish ``{"event", "data"}`` to one profile. Returns True if sent."""
    if redis is None:
        return False
    try:
        await redis.publish(  # type: ignore[attr-defined]
            user_channel(profile_id),
            json.dumps({"event": event, "data": data}, default=str),
        )
    except Exception:
        logger.warning("Failed to publish %s via ws:user:%s", event, profile_id, exc_info=True)
        return False
    return True


async def broadcast(redis: object | None, channel: str, data: dict[str, Any]) -> bool:
    """Publish to a broadcast pub/sub channel (see ``ws.bridge.CHANNEL_MAP``)."""
    if redis is None:
        return False
    try:
        await redis.publish(channel, json.dumps(data, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish broadcast on %s", channel, exc_info=True)
        return False
    return True

