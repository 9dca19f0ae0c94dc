"""Emotional state API routes."""
from __future__ import annotations

from time import perf_counter
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from nous.api.schemas.emotions import (
    EmotionalStateResponse,
    EmotionDecayRequest,
    EmotionLogRequest,
    EmotionLogResponse,
    MoodDescriptionResponse,
    MoodScalars,
)
from nous.db.deps import get_db
from nous.db.models import EmotionalState
from nous.observability.metrics import log_metric
from nous.observability.tracing import trace
from nous.services.emotion_engine import EmotionEngine
from nous.services.emotional_state_service import (
    EmotionalStateNotFound,
    decay_emotional_state,
    describe_user_mood,
    get_emotion_engine,
    get_emotional_state,
    log_emotion,
    to_snapshot,
)

router = APIRouter()


@router.get("/emotions/state", response_model=EmotionalStateResponse, tags=["emotions"])
def get_state(request: Request, user_id: UUID = Query(..., description="User ID"), db: Session = Depends(get_db)) -> EmotionalStateResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("emotions.state", metadata={"user_id": str(user_id)}, user_id=str(user_id), request_id=request_id):
        row = get_emotional_state(db, user_id)
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emotional state not found")
    return _serialize_state(row, request_id)


@router.post("/emotions/log", response_model=EmotionLogResponse, tags=["emotions"])
def log_emotion_endpoint(
    payload: EmotionLogRequest,
    request: Request,
    db: Session = Depends(get_db),
    engine: EmotionEngine = Depends(get_emotion_engine),
) -> EmotionLogResponse:
    """Apply an emotion event and return the updated mood scalars."""
    request_id = getattr(request.state, "request_id", None)
    start = perf_counter()
    metadata = {"user_id": str(payload.user_id), "emotion": payload.emotion, "intensity": payload.intensity}
    with trace("emotions.log", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        try:
            mood = log_emotion(
                db,
                engine,
                user_id=payload.user_id,
                emotion=payload.emotion,
                intensity=payload.intensity,
                trigger=payload.trigger,
            )
        except EmotionalStateNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emotional state not found")

    latency_ms = (perf_counter() - start) * 1000
    log_metric("emotions.log.latency_ms", latency_ms, metadata={"user_id": str(payload.user_id)})
    return EmotionLogResponse(user_id=payload.user_id, mood=MoodScalars(**mood.as_dict()), request_id=request_id or "")


@router.post("/emotions/decay", response_model=EmotionalStateResponse, tags=["emotions"])
def decay_endpoint(
    payload: EmotionDecayRequest,
    request: Request,
    db: Session = Depends(get_db),
    engine: EmotionEngine = Depends(get_emotion_engine),
) -> EmotionalStateResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("emotions.decay", metadata={"user_id": str(payload.user_id)}, user_id=str(payload.user_id), request_id=request_id):
        try:
            row = decay_emotional_state(db, engine, user_id=payload.user_id)
        except EmotionalStateNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emotional state not found")
    log_metric("emotions.decay.success", 1, metadata={"user_id": str(payload.user_id)})
    return _serialize_state(row, request_id)


@router.get("/emotions/mood", response_model=MoodDescriptionResponse, tags=["emotions"])
def get_mood(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    db: Session = Depends(get_db),
    engine: EmotionEngine = Depends(get_emotion_engine),
) -> MoodDescriptionResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("emotions.mood", metadata={"user_id": str(user_id)}, user_id=str(user_id), request_id=request_id):
        try:
            description, row = describe_user_mood(db, engine, user_id)
        except EmotionalStateNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Emotional state not found")
    return MoodDescriptionResponse(
        summary=description.summary,
        valence=description.valence,
        arousal=description.arousal,
        connection=description.connection,
        curiosity=description.curiosity,
        raw=_serialize_state(row, request_id),
    )


def _serialize_state(row: EmotionalState, request_id: str | None) -> EmotionalStateResponse:
    snapshot = to_snapshot(row)
    return EmotionalStateResponse(
        user_id=row.user_id,
        mood=MoodScalars(**snapshot.mood.as_dict()),
        baseline=MoodScalars(**snapshot.baseline.as_dict()),
        recent_emotions=[event.as_dict() for event in snapshot.recent_emotions],
        last_updated=snapshot.last_updated,
        request_id=request_id or "",
    )
