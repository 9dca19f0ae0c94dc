"""Schemas for emotional state endpoints."""
from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class MoodScalars(BaseModel):
    valence: float
    arousal: float
    connection: float
    curiosity: float
    energy: float


class EmotionEntry(BaseModel):
    label: str
    intensity: float
    trigger: str
    timestamp: int


class EmotionalStateResponse(BaseModel):
    user_id: UUID
    mood: MoodScalars
    baseline: MoodScalars
    recent_emotions: List[EmotionEntry] = Field(default_factory=list)
    last_updated: int
    request_id: str


class EmotionLogRequest(BaseModel):
    user_id: UUID
    emotion: str = Field(..., min_length=1, max_length=64)
    intensity: float = Field(..., ge=0.0, le=1.0)
    trigger: str = Field(default="", max_length=500)


class EmotionLogResponse(BaseModel):
    user_id: UUID
    mood: MoodScalars
    request_id: str


class EmotionDecayRequest(BaseModel):
    user_id: UUID


class MoodDescriptionResponse(BaseModel):
    summary: str
    valence: str
    arousal: str
    connection: str
    curiosity: str
    raw: EmotionalStateResponse
