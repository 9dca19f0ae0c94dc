"""Per-user emotional state ORM model."""
from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from nous.db.base import Base
from nous.db.types import JSONBCompat


class EmotionalState(Base):
    __tablename__ = "emotional_states"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    valence = Column(Float, nullable=False)
    arousal = Column(Float, nullable=False)
    connection = Column(Float, nullable=False)
    curiosity = Column(Float, nullable=False)
    energy = Column(Float, nullable=False)
    baseline_valence = Column(Float, nullable=False)
    baseline_arousal = Column(Float, nullable=False)
    baseline_connection = Column(Float, nullable=False)
    baseline_curiosity = Column(Float, nullable=False)
    baseline_energy = Column(Float, nullable=False)
    # Newest first, at most ten entries of {label, intensity, trigger, timestamp}.
    recent_emotions = Column(JSONBCompat, nullable=False, default=list)
    last_updated = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="emotional_state")
