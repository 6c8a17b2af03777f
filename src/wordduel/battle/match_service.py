"""Match lifecycle: queueing, progress, settlement and cleanup.

Brackets: ranked matches pair players of the same grade and move
``elo_rating``; free matches use bracket 0 and move ``elo_free``.

Settlement runs once per match. The in_progress -> completed transition is
a guarded UPDATE so two players finishing at the same moment cannot both
pay out rewards.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.battle.elo import apply_change, elo_change, search_range, streak_bonus
from wordduel.battle.score_codec import MatchProgress, encode_progress
from wordduel.battle.spectate import publish_match_event
from wordduel.battle.stats import compute_streaks, win_rate, win_streak
from wordduel.battle.tiers import RankState, apply_loss, apply_win
from wordduel.config import get_settings
from wordduel.db.base import as_utc
from wordduel.db.models import ComboRecord, Match, Profile
from wordduel.errors import ForbiddenError, NotFoundError
from wordduel.gamification.badge_service import check_and_award_badges
from wordduel.gamification.economy import add_coins
from wordduel.gamification.quest_service import record_quest_event
from wordduel.gamification.xp_service import grant_xp
from wordduel.learning.service import pick_battle_words
from wordduel.social.notification_push import broadcast, publish_to_profile
from wordduel.teams.contribution import add_team_contribution

logger = logging.getLogger(__name__)

WIN_XP = 50
LOSS_XP = 20
WIN_COINS = 30
LOSS_COINS = 10
FREE_BRACKET = 0
HISTORY_LIMIT = 50

ACTIVE_STATUSES = ("pending", "in_progress")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def bracket_for(profile: Profile, free: bool) -> int:
    return FREE_BRACKET if free else profile.grade


def rating_of(profile: Profile, free: bool) -> int:
    return profile.elo_free if free else profile.elo_rating


def matches_played(profile: Profile, free: bool) -> int:
    if free:
        return profile.free_match_wins + profile.free_match_losses
    return profile.wins + profile.losses


def match_duration(match: Match) -> timedelta:
    settings = get_settings()
    seconds = settings.free_match_seconds if match.is_free else settings.ranked_match_seconds
    return timedelta(seconds=seconds)


def side_of(match: Match, profile_id: int) -> int:
    """1 or 2 for a participant; raises ForbiddenError otherwise."""
    if match.player1_id == profile_id:
        return 1
    if match.player2_id is not None and match.player2_id == profile_id:
        return 2
    raise ForbiddenError("Not a participant in this match")


def progress_of(match: Match, side: int) -> MatchProgress:
    return MatchProgress(
        points=getattr(match, f"player{side}_points"),
        questions_answered=getattr(match, f"player{side}_answered"),
        finished=getattr(match, f"player{side}_finished"),
    )


def _set_progress(match: Match, side: int, progress: MatchProgress) -> None:
    setattr(match, f"player{side}_points", progress.points)
    setattr(match, f"player{side}_answered", progress.questions_answered)
    setattr(match, f"player{side}_finished", progress.finished)


def _match_payload(match: Match) -> dict:
    return {
        "match_id": match.id,
        "status": match.status,
        "is_free": match.is_free,
        "is_ai": match.is_ai,
        "player1_id": match.player1_id,
        "player2_id": match.player2_id,
        "player1_score": encode_progress(progress_of(match, 1)),
        "player2_score": encode_progress(progress_of(match, 2)),
        "winner_id": match.winner_id,
        "is_draw": match.is_draw,
    }


async def get_match(db: AsyncSession, match_id: int) -> Match:
    result = await db.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


async def get_current_match(db: AsyncSession, profile_id: int) -> Match | None:
    """The profile's newest pending or in-progress match."""
    result = await db.execute(
        select(Match)
        .where(
            Match.status.in_(ACTIVE_STATUSES),
            or_(Match.player1_id == profile_id, Match.player2_id == profile_id),
        )
        .order_by(Match.created_at.desc(), Match.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Queueing
# ---------------------------------------------------------------------------


async def find_or_create_match(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    free: bool = False,
    now: datetime | None = None,
) -> Match:
    """Join the closest-rated waiting match in the bracket or open a new one.

    A waiting match's rating window widens the longer it has waited. A
    profile already waiting gets its own pending match back.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)

    current = await get_current_match(db, profile.id)
    if current is not None:
        if current.status == "pending" and current.player1_id == profile.id and current.is_free == free:
            return current
        raise ValueError("Already in a match")

    bracket = bracket_for(profile, free)
    rating = rating_of(profile, free)
    window_start = now - timedelta(seconds=settings.queue_wait_seconds)

    result = await db.execute(
        select(Match).where(
            Match.status == "pending",
            Match.grade == bracket,
            Match.is_free.is_(free),
            Match.is_ai.is_(False),
            Match.player2_id.is_(None),
            Match.player1_id != profile.id,
            Match.created_at >= window_start,
        )
    )
    candidates = []
    for match in result.scalars().all():
        waited = (now - as_utc(match.created_at)).total_seconds()
        distance = abs(match.player1_elo - rating)
        if distance <= search_range(waited):
            candidates.append((distance, as_utc(match.created_at), match))
    candidates.sort(key=lambda c: (c[0], c[1]))

    for _, _, candidate in candidates:
        words = await pick_battle_words(db, bracket, settings.match_word_count)
        claimed = await db.execute(
            update(Match)
            .where(Match.id == candidate.id, Match.status == "pending", Match.player2_id.is_(None))
            .values(
                player2_id=profile.id,
                player2_elo=rating,
                status="in_progress",
                words=words,
                started_at=now,
            )
            .returning(Match.id)
            .execution_options(synchronize_session=False)
        )
        if claimed.first() is None:
            continue
        await db.refresh(candidate)
        payload = {**_match_payload(candidate), "words": candidate.words}
        await publish_to_profile(redis, candidate.player1_id, "match_found", {**payload, "opponent_id": profile.id})
        await publish_to_profile(redis, profile.id, "match_found", {**payload, "opponent_id": candidate.player1_id})
        logger.info("Match %d paired: %d vs %d", candidate.id, candidate.player1_id, profile.id)
        return candidate

    match = Match(
        player1_id=profile.id,
        grade=bracket,
        is_free=free,
        status="pending",
        player1_elo=rating,
        words=[],
        created_at=now,
    )
    db.add(match)
    await db.flush()
    logger.info("Match %d queued for profile %d (bracket %d)", match.id, profile.id, bracket)
    return match


async def create_ai_match(
    db: AsyncSession,
    profile: Profile,
    free: bool = False,
    now: datetime | None = None,
) -> Match:
    """Start a match against a simulated opponent rated like the player."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    if await get_current_match(db, profile.id) is not None:
        raise ValueError("Already in a match")

    bracket = bracket_for(profile, free)
    rating = rating_of(profile, free)
    match = Match(
        player1_id=profile.id,
        grade=bracket,
        is_free=free,
        is_ai=True,
        status="in_progress",
        player1_elo=rating,
        player2_elo=rating,
        words=await pick_battle_words(db, bracket, settings.match_word_count),
        created_at=now,
        started_at=now,
    )
    db.add(match)
    await db.flush()
    return match


# ---------------------------------------------------------------------------
# In play
# ---------------------------------------------------------------------------


async def submit_progress(
    db: AsyncSession,
    redis: object | None,
    match_id: int,
    profile: Profile,
    progress: MatchProgress,
    ai_progress: MatchProgress | None = None,
) -> Match:
    """Store the caller's progress and relay it to the opponent.

    For AI matches the client also reports the simulated opponent's
    progress via ``ai_progress``.
    """
    match = await get_match(db, match_id)
    side = side_of(match, profile.id)
    if match.status != "in_progress":
        raise ValueError(f"Cannot submit progress to a match in '{match.status}' state")
    if getattr(match, f"player{side}_finished"):
        raise ValueError("Progress is already final")

    _set_progress(match, side, progress)
    if match.is_ai and ai_progress is not None:
        _set_progress(match, 2, ai_progress)
    await db.flush()

    opponent_id = match.player2_id if side == 1 else match.player1_id
    if opponent_id is not None:
        await publish_to_profile(redis, opponent_id, "match_progress", {
            "match_id": match.id,
            "points": progress.points,
            "questions_answered": progress.questions_answered,
            "finished": progress.finished,
            "score": encode_progress(progress),
        })
    spectated = [(profile.id, side)]
    if match.is_ai and ai_progress is not None:
        spectated.append((None, 2))
    for player_id, shown in spectated:
        current = progress_of(match, shown)
        await publish_match_event(redis, match.id, "player_progress", {
            "player_id": player_id,
            "points": current.points,
            "questions_answered": current.questions_answered,
            "finished": current.finished,
        })
    return match


async def finish_match(
    db: AsyncSession,
    redis: object | None,
    match_id: int,
    profile: Profile,
    max_combo: int = 0,
) -> Match:
    """Mark the caller finished and settle once both sides are done.

    AI matches settle immediately. Finishing a completed match returns it
    unchanged.
    """
    match = await get_match(db, match_id)
    side = side_of(match, profile.id)
    if match.status == "completed":
        return match
    if match.status != "in_progress":
        raise ValueError(f"Cannot finish a match in '{match.status}' state")

    flags = {f"player{side}_finished": True}
    if match.is_ai:
        flags["player2_finished"] = True
    # Both flags come back from the row itself so simultaneous finishers see each other
    finished = (
        await db.execute(
            update(Match)
            .where(Match.id == match.id, Match.status == "in_progress")
            .values(**flags)
            .returning(Match.player1_finished, Match.player2_finished)
            .execution_options(synchronize_session=False)
        )
    ).first()
    await db.refresh(match)
    if finished is None:
        if match.status == "completed":
            return match
        raise ValueError(f"Cannot finish a match in '{match.status}' state")

    if max_combo > 0:
        await _record_combo(db, profile, match.id, max_combo)

    if not (finished.player1_finished and finished.player2_finished):
        opponent_id = match.player2_id if side == 1 else match.player1_id
        if opponent_id is not None:
            await publish_to_profile(redis, opponent_id, "opponent_finished", {"match_id": match.id})
        return match

    await _settle(db, redis, match)
    return match


async def _record_combo(db: AsyncSession, profile: Profile, match_id: int, combo: int) -> None:
    db.add(ComboRecord(profile_id=profile.id, match_id=match_id, combo_count=combo))
    if combo > profile.max_combo:
        profile.max_combo = combo
    await db.flush()


async def _settle(db: AsyncSession, redis: object | None, match: Match) -> None:
    now = datetime.now(timezone.utc)
    p1, p2 = match.player1_points, match.player2_points
    is_draw = p1 == p2
    if is_draw:
        winner_id = None
    elif p1 > p2:
        winner_id = match.player1_id
    else:
        # An AI win leaves winner_id empty with is_draw False
        winner_id = match.player2_id

    claimed = await db.execute(
        update(Match)
        .where(Match.id == match.id, Match.status == "in_progress", Match.rewards_applied.is_(False))
        .values(status="completed", winner_id=winner_id, is_draw=is_draw, rewards_applied=True, ended_at=now)
        .returning(Match.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.first() is None:
        await db.refresh(match)
        return
    await db.refresh(match)

    player1 = await db.get(Profile, match.player1_id)
    player2 = await db.get(Profile, match.player2_id) if match.player2_id is not None else None
    ranked_pvp = not match.is_ai and player2 is not None

    p1_rating = match.player1_elo
    p2_rating = match.player2_elo if match.player2_elo is not None else p1_rating

    outcome1 = "draw" if is_draw else ("win" if winner_id == match.player1_id else "loss")
    change1 = await _apply_outcome(
        db, redis, match, player1, outcome1, p2_rating, rate=ranked_pvp,
    )
    match.player1_elo_change = change1
    if player2 is not None:
        outcome2 = "draw" if is_draw else ("win" if winner_id == player2.id else "loss")
        match.player2_elo_change = await _apply_outcome(
            db, redis, match, player2, outcome2, p1_rating, rate=ranked_pvp,
        )
    await db.flush()

    payload = _match_payload(match)
    for pid in (match.player1_id, match.player2_id):
        if pid is not None:
            await publish_to_profile(redis, pid, "match_completed", payload)
    await publish_match_event(redis, match.id, "match_completed", payload)
    await broadcast(redis, "pubsub:match_update", payload)
    if not match.is_free:
        await broadcast(redis, "pubsub:leaderboard_update", {"board": "rank", "grade": match.grade})
    logger.info("Match %d completed: winner=%s draw=%s", match.id, winner_id, is_draw)


async def _recent_outcomes(db: AsyncSession, profile_id: int, free: bool) -> list[str]:
    result = await db.execute(
        select(Match.winner_id, Match.is_draw)
        .where(
            Match.status == "completed",
            Match.is_free.is_(free),
            or_(Match.player1_id == profile_id, Match.player2_id == profile_id),
        )
        .order_by(Match.ended_at.desc(), Match.id.desc())
        .limit(HISTORY_LIMIT)
    )
    return [
        "draw" if is_draw else ("win" if winner_id == profile_id else "loss")
        for winner_id, is_draw in result.all()
    ]


async def _apply_outcome(
    db: AsyncSession,
    redis: object | None,
    match: Match,
    profile: Profile,
    outcome: str,
    opponent_rating: int,
    *,
    rate: bool,
) -> int:
    """Pay one player's rewards and move their counters. Returns the rating change."""
    won = outcome == "win"
    free = match.is_free

    xp = WIN_XP if won else LOSS_XP
    coins = WIN_COINS if won else LOSS_COINS
    if won:
        streak = win_streak(await _recent_outcomes(db, profile.id, free))
        xp = round(xp * streak_bonus(streak))

    change = 0
    if rate:
        change = elo_change(
            rating_of(profile, free),
            opponent_rating,
            won,
            draw=outcome == "draw",
            matches_played=matches_played(profile, free),
        )

    values: dict = {}
    if free:
        values["elo_free"] = apply_change(profile.elo_free, change)
        if outcome == "win":
            values["free_match_wins"] = Profile.free_match_wins + 1
        elif outcome == "loss":
            values["free_match_losses"] = Profile.free_match_losses + 1
    else:
        values["elo_rating"] = apply_change(profile.elo_rating, change)
        state = RankState(profile.rank_tier, profile.rank_stars, profile.rank_points)
        if outcome == "win":
            values["wins"] = Profile.wins + 1
            state = apply_win(state)
        elif outcome == "loss":
            values["losses"] = Profile.losses + 1
            state = apply_loss(state)
        if not match.is_ai:
            values.update(rank_tier=state.tier, rank_stars=state.stars, rank_points=state.rank_points)

    await db.execute(
        update(Profile)
        .where(Profile.id == profile.id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(profile)

    await grant_xp(db, redis, profile, xp, "battle", str(match.id), idempotency_key=f"match:{match.id}:{profile.id}")
    await add_coins(db, profile.id, coins)
    await add_team_contribution(db, profile.id, wins=1 if won else 0, battles=1)
    await record_quest_event(db, profile.id, "battles_played")
    if won:
        await record_quest_event(db, profile.id, "battles_won")
    await check_and_award_badges(db, redis, profile)
    return change


# ---------------------------------------------------------------------------
# Cancellation & cleanup
# ---------------------------------------------------------------------------


async def cancel_match(db: AsyncSession, redis: object | None, match_id: int, profile: Profile) -> Match:
    """Abandon a pending or in-progress match without rewards."""
    match = await get_match(db, match_id)
    side = side_of(match, profile.id)
    if match.status not in ACTIVE_STATUSES:
        raise ValueError(f"Cannot cancel a match in '{match.status}' state")
    match.status = "cancelled"
    match.ended_at = datetime.now(timezone.utc)
    await db.flush()

    opponent_id = match.player2_id if side == 1 else match.player1_id
    if opponent_id is not None:
        await publish_to_profile(redis, opponent_id, "match_cancelled", {"match_id": match.id})
    return match


async def expire_stale_matches(db: AsyncSession, now: datetime | None = None) -> int:
    """Cancel queue entries past the wait window and matches past their clock."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)

    expired = 0
    result = await db.execute(
        update(Match)
        .where(Match.status == "pending", Match.created_at < now - timedelta(seconds=settings.queue_wait_seconds))
        .values(status="cancelled", ended_at=now)
        .returning(Match.id)
        .execution_options(synchronize_session=False)
    )
    expired += len(result.all())

    for free, seconds in ((False, settings.ranked_match_seconds), (True, settings.free_match_seconds)):
        result = await db.execute(
            update(Match)
            .where(
                Match.status == "in_progress",
                Match.is_free.is_(free),
                Match.started_at < now - timedelta(seconds=seconds),
            )
            .values(status="cancelled", ended_at=now)
            .returning(Match.id)
            .execution_options(synchronize_session=False)
        )
        expired += len(result.all())

    if expired:
        logger.info("Expired %d stale matches", expired)
    return expired


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_active_match(
    db: AsyncSession,
    profile: Profile,
    now: datetime | None = None,
) -> dict | None:
    """The caller's in-progress match and its remaining seconds, for reconnects.

    A match whose clock has run out is cancelled and None is returned.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Match)
        .where(
            Match.status == "in_progress",
            or_(Match.player1_id == profile.id, Match.player2_id == profile.id),
        )
        .order_by(Match.started_at.desc())
        .limit(1)
    )
    match = result.scalar_one_or_none()
    if match is None:
        return None

    started = as_utc(match.started_at) or now
    remaining = (started + match_duration(match) - now).total_seconds()
    if remaining <= 0:
        match.status = "cancelled"
        match.ended_at = now
        await db.flush()
        return None
    return {"match": match, "remaining_seconds": int(remaining)}


async def get_match_history(db: AsyncSession, profile: Profile, limit: int = 20) -> list[dict]:
    """Completed matches from the caller's point of view, newest first."""
    result = await db.execute(
        select(Match)
        .where(
            Match.status == "completed",
            or_(Match.player1_id == profile.id, Match.player2_id == profile.id),
        )
        .order_by(Match.ended_at.desc(), Match.id.desc())
        .limit(limit)
    )
    matches = list(result.scalars().all())

    opponent_ids = {
        (m.player2_id if m.player1_id == profile.id else m.player1_id) for m in matches
    } - {None}
    names: dict[int, str] = {}
    if opponent_ids:
        rows = await db.execute(select(Profile.id, Profile.username).where(Profile.id.in_(opponent_ids)))
        names = {pid: username for pid, username in rows.all()}

    history = []
    for m in matches:
        side = side_of(m, profile.id)
        other = 2 if side == 1 else 1
        mine, theirs = progress_of(m, side), progress_of(m, other)
        opponent_id = getattr(m, f"player{other}_id")
        if m.is_draw:
            outcome = "draw"
        else:
            outcome = "win" if m.winner_id == profile.id else "loss"
        history.append({
            "match_id": m.id,
            "is_free": m.is_free,
            "is_ai": m.is_ai,
            "opponent_id": opponent_id,
            "opponent_name": names.get(opponent_id, "AI") if opponent_id else "AI",
            "my_points": mine.points,
            "opponent_points": theirs.points,
            "my_score": encode_progress(mine),
            "opponent_score": encode_progress(theirs),
            "result": outcome,
            "elo_change": getattr(m, f"player{side}_elo_change"),
            "ended_at": m.ended_at,
        })
    return history


async def get_battle_stats(db: AsyncSession, profile: Profile, free: bool = False) -> dict:
    """Win rate and streaks for one bracket."""
    outcomes = await _recent_outcomes(db, profile.id, free)
    streaks = compute_streaks(outcomes)
    wins = profile.free_match_wins if free else profile.wins
    losses = profile.free_match_losses if free else profile.losses
    return {
        "wins": wins,
        "losses": losses,
        "win_rate": round(win_rate(wins, losses), 1),
        "rating": rating_of(profile, free),
        "current_streak": streaks.current_streak,
        "streak_type": streaks.streak_type,
        "best_win_streak": streaks.best_win_streak,
        "best_loss_streak": streaks.best_loss_streak,
    }
