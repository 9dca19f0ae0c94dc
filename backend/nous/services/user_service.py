"""Helpers for working with users."""
from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nous.db.models import User
from nous.services.emotional_state_service import create_emotional_state, get_emotional_state


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create it together with its emotional state."""
    user = db.get(User, user_id)
    if user:
        if get_emotional_state(db, user_id) is None:
            create_emotional_state(db, user_id)
            db.commit()
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
        create_emotional_state(db, user_id)
        db.commit()
        return user
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def delete_user(db: Session, user_id: UUID) -> None:
    """Delete the account; dependent rows such as the emotional state go with it."""
    user = db.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    db.delete(user)
    db.commit()
