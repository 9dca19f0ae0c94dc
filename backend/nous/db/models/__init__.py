"""ORM models exposed for metadata discovery."""
from nous.db.models.emotional_state import EmotionalState
from nous.db.models.user import User

__all__ = [
    "EmotionalState",
    "User",
]
