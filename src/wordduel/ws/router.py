"""WebSocket endpoint: JWT auth, channel subscriptions and heartbeats.

Protocol:
    Client -> Server:
        {"action": "subscribe", "channel": "matches"}
        {"action": "subscribe", "channels": ["matches", "social"]}
        {"action": "subscribe", "channel": "match:42"}     (spectate; players and friends only)
        {"action": "unsubscribe", "channel": "matches"}
        {"action": "ping"}

    Server -> Client:
        {"type": "connected", "profile_id": 1, "channels": [...]}
        {"channel": "matches", "data": {...}}          (broadcasts)
        {"channel": "match:42", "data": {"type": "player_progress", ...}}
        {"type": "match_found", "payload": {...}}      (personal events)
        {"type": "subscribed" | "unsubscribed", "channel": "matches"}
        {"type": "pong"} / {"type": "heartbeat"}
        {"type": "error", "message": "..."}
"""

import asyncio
import json
import uuid

import jwt
import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from wordduel.auth.jwt import decode_access_token
from wordduel.battle.spectate import can_spectate
from wordduel.config import get_settings
from wordduel.database import get_session
from wordduel.db.models import Match
from wordduel.ws.manager import VALID_CHANNELS, manager, match_id_of

logger = structlog.get_logger()

router = APIRouter()


def _requested_channels(msg: dict) -> list[str]:
    channels = msg.get("channels")
    if isinstance(channels, list):
        return [str(c) for c in channels]
    return [str(msg.get("channel", ""))]


async def may_watch(profile_id: int, match_id: int) -> bool:
    """Whether the profile may follow a match's spectator channel."""
    allowed = False
    async for db in get_session():
        match = await db.get(Match, match_id)
        allowed = match is not None and await can_spectate(db, match, profile_id)
        break
    return allowed


async def handle_client_message(conn_id: str, raw: str, profile_id: int | None = None) -> list[dict]:
    """Apply one client frame and return the replies to send back."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return [{"type": "error", "message": "Invalid JSON"}]
    if not isinstance(msg, dict):
        return [{"type": "error", "message": "Expected a JSON object"}]

    action = msg.get("action")
    if action == "ping":
        return [{"type": "pong"}]

    if action == "subscribe":
        replies = []
        for channel in _requested_channels(msg):
            match_id = match_id_of(channel)
            if match_id is not None and (profile_id is None or not await may_watch(profile_id, match_id)):
                replies.append({"type": "error", "message": f"Not allowed to watch {channel}"})
                continue
            if await manager.subscribe(conn_id, channel):
                replies.append({"type": "subscribed", "channel": channel})
            else:
                replies.append({"type": "error", "message": f"Invalid channel: {channel}"})
        return replies

    if action == "unsubscribe":
        replies = []
        for channel in _requested_channels(msg):
            await manager.unsubscribe(conn_id, channel)
            replies.append({"type": "unsubscribed", "channel": channel})
        return replies

    return [{"type": "error", "message": f"Unknown action: {action}"}]


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    try:
        profile_id = decode_access_token(token).profile_id
    except jwt.InvalidTokenError as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    conn_id = str(uuid.uuid4())
    if not await manager.connect(websocket, conn_id, profile_id):
        return

    heartbeat = get_settings().ws_heartbeat_interval_seconds
    try:
        await websocket.send_json({"type": "connected", "profile_id": profile_id, "channels": sorted(VALID_CHANNELS)})
        while True:
            try:
                raw = await asyncio.wait_for(websocket.receive_text(), timeout=heartbeat)
            except asyncio.TimeoutError:
                # Idle connections get a heartbeat so proxies keep them open
                await websocket.send_json({"type": "heartbeat"})
                continue
            for reply in await handle_client_message(conn_id, raw, profile_id):
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error", conn_id=conn_id, profile_id=profile_id)
    finally:
        await manager.disconnect(conn_id)
