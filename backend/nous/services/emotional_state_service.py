"""Persistence helpers around the emotion engine."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from nous.core.config import settings
from nous.db.models import EmotionalState
from nous.observability.metrics import log_metric
from nous.services.emotion_engine import (
    DEFAULT_EMOTION_EFFECTS,
    EmotionalSnapshot,
    EmotionEngine,
    EmotionEvent,
    MoodDescription,
    MoodVector,
    initial_state,
    load_effect_table,
)

logger = logging.getLogger(__name__)


class EmotionalStateNotFound(ValueError):
    """Raised when a user has no emotional state row."""

    def __init__(self, user_id: UUID):
        super().__init__(f"No emotional state for user {user_id}")
        self.user_id = user_id


@dataclass
class DecayRunStats:
    users_processed: int
    snapshots_written: int
    failed: int = 0


def now_ms() -> int:
    return int(time.time() * 1000)


@lru_cache
def get_emotion_engine() -> EmotionEngine:
    """Engine built from settings; the effect table is loaded once per process."""
    effects = DEFAULT_EMOTION_EFFECTS
    if settings.emotion_effects_path:
        effects = load_effect_table(settings.emotion_effects_path)
        logger.info("Loaded %s emotion effects from %s", len(effects), settings.emotion_effects_path)
    return EmotionEngine(effects=effects, decay_rate=settings.emotion_decay_rate)


def to_snapshot(row: EmotionalState) -> EmotionalSnapshot:
    return EmotionalSnapshot(
        mood=MoodVector(
            valence=row.valence,
            arousal=row.arousal,
            connection=row.connection,
            curiosity=row.curiosity,
            energy=row.energy,
        ),
        baseline=MoodVector(
            valence=row.baseline_valence,
            arousal=row.baseline_arousal,
            connection=row.baseline_connection,
            curiosity=row.baseline_curiosity,
            energy=row.baseline_energy,
        ),
        recent_emotions=tuple(EmotionEvent.from_dict(entry) for entry in (row.recent_emotions or [])),
        last_updated=int(row.last_updated or 0),
    )


def _write_snapshot(row: EmotionalState, snapshot: EmotionalSnapshot) -> None:
    for dim, value in snapshot.mood.as_dict().items():
        setattr(row, dim, value)
    for dim, value in snapshot.baseline.as_dict().items():
        setattr(row, f"baseline_{dim}", value)
    # A fresh list so the JSON column is flagged dirty.
    row.recent_emotions = [event.as_dict() for event in snapshot.recent_emotions]
    row.last_updated = snapshot.last_updated


def create_emotional_state(db: Session, user_id: UUID, now: Optional[int] = None) -> EmotionalState:
    """Insert the seed state for a new user. Does not commit."""
    row = EmotionalState(user_id=user_id)
    _write_snapshot(row, initial_state(now if now is not None else now_ms()))
    db.add(row)
    db.flush()
    return row


def get_emotional_state(db: Session, user_id: UUID) -> Optional[EmotionalState]:
    return db.get(EmotionalState, user_id)


def _lock_state(db: Session, user_id: UUID) -> EmotionalState:
    row = (
        db.query(EmotionalState)
        .filter(EmotionalState.user_id == user_id)
        .with_for_update()
        .one_or_none()
    )
    if row is None:
        raise EmotionalStateNotFound(user_id)
    return row


def log_emotion(
    db: Session,
    engine: EmotionEngine,
    *,
    user_id: UUID,
    emotion: str,
    intensity: float,
    trigger: str,
    now: Optional[int] = None,
) -> MoodVector:
    """Apply an emotion event to the stored state and return the new scalars."""
    row = _lock_state(db, user_id)
    updated = engine.apply_emotion(to_snapshot(row), emotion, intensity, trigger, now if now is not None else now_ms())
    _write_snapshot(row, updated)
    db.add(row)
    db.commit()
    known = bool(engine.effect_for(emotion))
    log_metric("emotions.logged", 1, metadata={"emotion": emotion.lower(), "known": known})
    if not known:
        logger.info("Unknown emotion label %r recorded without effect (user=%s)", emotion, user_id)
    return updated.mood


def decay_emotional_state(
    db: Session,
    engine: EmotionEngine,
    *,
    user_id: UUID,
    now: Optional[int] = None,
) -> EmotionalState:
    row = _lock_state(db, user_id)
    updated = engine.decay(to_snapshot(row), now if now is not None else now_ms())
    _write_snapshot(row, updated)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def describe_user_mood(db: Session, engine: EmotionEngine, user_id: UUID) -> tuple[MoodDescription, EmotionalState]:
    row = get_emotional_state(db, user_id)
    if row is None:
        raise EmotionalStateNotFound(user_id)
    return engine.describe_mood(to_snapshot(row)), row


def run_decay_for_all_users(db: Session, engine: Optional[EmotionEngine] = None, now: Optional[int] = None) -> DecayRunStats:
    """Decay every stored state once. Used by the scheduler worker."""
    engine = engine or get_emotion_engine()
    tick = now if now is not None else now_ms()
    user_ids = [user_id for (user_id,) in db.query(EmotionalState.user_id).all()]
    written = 0
    failed = 0
    for user_id in user_ids:
        try:
            decay_emotional_state(db, engine, user_id=user_id, now=tick)
            written += 1
        except EmotionalStateNotFound:
            # Account deleted between listing and decaying.
            db.rollback()
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("Decay failed for user=%s", user_id)
    return DecayRunStats(users_processed=len(user_ids), snapshots_written=written, failed=failed)
