"""Pydantic models for battle endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from wordduel.battle.score_codec import MatchProgress, decode_progress


class QueueRequest(BaseModel):
    free: bool = False


class ProgressFields(BaseModel):
    """One side's progress, either explicit or as the legacy packed score."""

    points: int | None = Field(None, ge=0, le=99)
    questions_answered: int = Field(0, ge=0, le=99)
    finished: bool = False
    score: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def require_points_or_score(self) -> ProgressFields:
        if self.points is None and self.score is None:
            raise ValueError("Provide either points or a packed score")
        return self

    def to_progress(self) -> MatchProgress:
        if self.score is not None:
            return decode_progress(self.score)
        return MatchProgress(
            points=self.points or 0,
            questions_answered=self.questions_answered,
            finished=self.finished,
        )


class ProgressRequest(ProgressFields):
    ai: ProgressFields | None = None


class FinishRequest(BaseModel):
    max_combo: int = Field(0, ge=0, le=99)


class MatchResponse(BaseModel):
    id: int
    status: str
    grade: int
    is_free: bool
    is_ai: bool
    player1_id: int
    player2_id: int | None = None
    player1_points: int
    player1_answered: int
    player1_finished: bool
    player2_points: int
    player2_answered: int
    player2_finished: bool
    player1_elo_change: int
    player2_elo_change: int
    winner_id: int | None = None
    is_draw: bool
    words: list[dict]
    created_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    model_config = {"from_attributes": True}


class ActiveMatchResponse(BaseModel):
    match: MatchResponse
    remaining_seconds: int


class MatchHistoryEntry(BaseModel):
    match_id: int
    is_free: bool
    is_ai: bool
    opponent_id: int | None = None
    opponent_name: str
    my_points: int
    opponent_points: int
    my_score: int
    opponent_score: int
    result: str
    elo_change: int
    ended_at: datetime | None = None


class BattleStatsResponse(BaseModel):
    wins: int
    losses: int
    win_rate: float
    rating: int
    current_streak: int
    streak_type: str | None = None
    best_win_streak: int
    best_loss_streak: int


class SpectatorSide(BaseModel):
    profile_id: int | None = None
    username: str
    avatar_url: str | None = None
    level: int | None = None
    rank_tier: str | None = None
    rank_stars: int | None = None
    points: int
    questions_answered: int
    finished: bool


class SpectateResponse(BaseModel):
    match_id: int
    status: str
    is_free: bool
    is_ai: bool
    winner_id: int | None = None
    is_draw: bool
    started_at: datetime | None = None
    ended_at: datetime | None = None
    player1: SpectatorSide
    player2: SpectatorSide
