"""Read-only spectating of friends' matches.

Players' progress is broadcast on ``pubsub:match:{id}``; the WebSocket bridge
forwards it to connections subscribed to ``match:{id}``. Only the players
and their friends may watch a match.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Match, Profile
from wordduel.errors import ForbiddenError, NotFoundError
from wordduel.social.friend_service import are_friends, is_blocked
from wordduel.social.notification_push import broadcast

logger = logging.getLogger(__name__)

WATCHABLE_STATUSES = ("in_progress", "completed")


def match_pubsub_channel(match_id: int) -> str:
    return f"pubsub:match:{match_id}"


async def publish_match_event(redis: object | None, match_id: int, event: str, data: dict[str, Any]) -> bool:
    """Broadcast an event to the match's spectators."""
    return await broadcast(redis, match_pubsub_channel(match_id), {"event": event, "match_id": match_id, **data})


def _players(match: Match) -> list[int]:
    return [pid for pid in (match.player1_id, match.player2_id) if pid is not None]


async def can_spectate(db: AsyncSession, match: Match, viewer_id: int) -> bool:
    """Players may always watch; others must be an unblocked friend of a player."""
    players = _players(match)
    if viewer_id in players:
        return True
    if match.status not in WATCHABLE_STATUSES:
        return False
    for player_id in players:
        if await is_blocked(db, viewer_id, player_id):
            return False
    for player_id in players:
        if await are_friends(db, viewer_id, player_id):
            return True
    return False


def _side(match: Match, side: int, profile: Profile | None) -> dict:
    card: dict[str, Any] = {
        "profile_id": None,
        "username": "AI",
        "avatar_url": None,
        "level": None,
        "rank_tier": None,
        "rank_stars": None,
    }
    if profile is not None:
        card.update(
            profile_id=profile.id,
            username=profile.username,
            avatar_url=profile.avatar_url,
            level=profile.level,
            rank_tier=profile.rank_tier,
            rank_stars=profile.rank_stars,
        )
    card.update(
        points=getattr(match, f"player{side}_points"),
        questions_answered=getattr(match, f"player{side}_answered"),
        finished=getattr(match, f"player{side}_finished"),
    )
    return card


async def spectate_match(db: AsyncSession, match_id: int, viewer: Profile) -> dict:
    """A spectator's snapshot of a match: both players and their live progress.

    The word list is not included.

    Raises:
        NotFoundError: Unknown match.
        ForbiddenError: The viewer is neither a player nor a friend of one,
            or the match has not started.
    """
    match = await db.get(Match, match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    if not await can_spectate(db, match, viewer.id):
        raise ForbiddenError("Only friends of the players can watch this match")

    player1 = await db.get(Profile, match.player1_id)
    player2 = await db.get(Profile, match.player2_id) if match.player2_id is not None else None
    logger.debug("Profile %d watching match %d", viewer.id, match.id)
    return {
        "match_id": match.id,
        "status": match.status,
        "is_free": match.is_free,
        "is_ai": match.is_ai,
        "winner_id": match.winner_id,
        "is_draw": match.is_draw,
        "started_at": match.started_at,
        "ended_at": match.ended_at,
        "player1": _side(match, 1, player1),
        "player2": _side(match, 2, player2),
    }
