"""Pydantic models for vocabulary endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WordResponse(BaseModel):
    id: int
    subject: str
    word: str
    meaning: str
    phonetic: str | None = None
    example: str | None = None
    topic: str | None = None
    grade: int
    unit: int
    difficulty: int

    model_config = {"from_attributes": True}


class WordListResponse(BaseModel):
    words: list[WordResponse]
    total: int


class StudySessionRequest(BaseModel):
    subject: str = "english"
    unit: int | None = Field(None, ge=1)
    count: int = Field(10, ge=1, le=50)


class StudySessionResponse(BaseModel):
    energy: int
    words: list[dict]


class AnswerRequest(BaseModel):
    word_id: int
    correct: bool


class AnswerResponse(BaseModel):
    word_id: int
    mastery_level: int
    correct_count: int
    incorrect_count: int


class WrongWordResponse(BaseModel):
    word_id: int
    word: str
    meaning: str
    phonetic: str | None = None
    subject: str
    correct_count: int
    incorrect_count: int
    mastery_level: int


class LearningStatsResponse(BaseModel):
    total_studied: int
    new: int
    familiar: int
    proficient: int
    mastered: int
    total_correct: int
    total_answered: int
    accuracy: float


class LevelResponse(BaseModel):
    id: int
    name: str
    unit: int
    order_index: int
    word_count: int
    energy_cost: int
    status: str
    stars: int
    best_score: int


class LevelStartResponse(BaseModel):
    level_id: int
    energy: int
    words: list[dict]


class LevelCompleteRequest(BaseModel):
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=1)


class LevelCompleteResponse(BaseModel):
    xp: int
    coins: int
    stars: int
    score: int
    status: str
    badges: list[str]


class WordImportRequest(BaseModel):
    """Pasted word list, one ``word - meaning`` pair per line."""

    text: str = Field(..., min_length=1)
    subject: str = "english"
    grade: int = Field(..., ge=1, le=12)
    unit: int = Field(1, ge=1)
    difficulty: int = Field(1, ge=1, le=5)
    topic: str | None = None


class WordImportResponse(BaseModel):
    inserted: int
    errors: list[str]
