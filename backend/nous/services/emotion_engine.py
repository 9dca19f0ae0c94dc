"""Emotional state model for the companion persona.

The persona keeps five bounded mood scalars per user. Emotion events nudge the
scalars by a fixed effect vector scaled by intensity, and a periodic decay pulls
each scalar a fixed fraction of the way back toward its baseline.

Everything in this module is pure: states are immutable snapshots and every
operation returns a new snapshot. Persistence lives in
``nous.services.emotional_state_service``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

DIMENSIONS: Tuple[str, ...] = ("valence", "arousal", "connection", "curiosity", "energy")
BOUNDS: Mapping[str, Tuple[float, float]] = MappingProxyType(
    {
        "valence": (-1.0, 1.0),
        "arousal": (0.0, 1.0),
        "connection": (0.0, 1.0),
        "curiosity": (0.0, 1.0),
        "energy": (0.0, 1.0),
    }
)
DEFAULT_DECAY_RATE = 0.1
HISTORY_LIMIT = 10

EffectTable = Mapping[str, Mapping[str, float]]


def _freeze(raw: Mapping[str, Mapping[str, float]]) -> EffectTable:
    frozen: Dict[str, Mapping[str, float]] = {}
    for label, effects in raw.items():
        unknown = set(effects) - set(DIMENSIONS)
        if unknown:
            raise ValueError(f"Emotion '{label}' has unknown dimensions: {sorted(unknown)}")
        frozen[str(label).strip().lower()] = MappingProxyType({dim: float(delta) for dim, delta in effects.items()})
    return MappingProxyType(frozen)


DEFAULT_EMOTION_EFFECTS: EffectTable = _freeze(
    {
        "joy": {"valence": 0.15, "arousal": 0.1},
        "happiness": {"valence": 0.12, "arousal": 0.05},
        "delight": {"valence": 0.18, "arousal": 0.15},
        "excitement": {"valence": 0.1, "arousal": 0.2},
        "sadness": {"valence": -0.15, "arousal": -0.1},
        "disappointment": {"valence": -0.1, "arousal": -0.05},
        "melancholy": {"valence": -0.08, "arousal": -0.1},
        "anger": {"valence": -0.15, "arousal": 0.2},
        "frustration": {"valence": -0.1, "arousal": 0.15},
        "irritation": {"valence": -0.08, "arousal": 0.1},
        "fear": {"valence": -0.12, "arousal": 0.2},
        "anxiety": {"valence": -0.1, "arousal": 0.15},
        "worry": {"valence": -0.08, "arousal": 0.1},
        "calm": {"valence": 0.05, "arousal": -0.15},
        "peace": {"valence": 0.08, "arousal": -0.2},
        "contentment": {"valence": 0.1, "arousal": -0.1},
        "curiosity": {"curiosity": 0.15, "arousal": 0.1},
        "interest": {"curiosity": 0.1, "arousal": 0.05},
        "fascination": {"curiosity": 0.2, "arousal": 0.15},
        "connection": {"connection": 0.15, "valence": 0.08},
        "warmth": {"connection": 0.12, "valence": 0.1},
        "affection": {"connection": 0.18, "valence": 0.12},
        "loneliness": {"connection": -0.15, "valence": -0.1},
        "disconnection": {"connection": -0.12, "valence": -0.05},
        "fatigue": {"energy": -0.15},
        "tiredness": {"energy": -0.1},
        "exhaustion": {"energy": -0.2},
        "energized": {"energy": 0.15},
        "alert": {"energy": 0.1, "arousal": 0.1},
        "refreshed": {"energy": 0.12, "valence": 0.05},
    }
)


def load_effect_table(path: str | Path) -> EffectTable:
    """Load an emotion effect table from a JSON object of ``label -> {dimension: delta}``."""
    with open(path, encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or not all(isinstance(v, dict) for v in payload.values()):
        raise ValueError(f"Effect table at {path} must map labels to objects of deltas")
    return _freeze(payload)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class MoodVector:
    valence: float
    arousal: float
    connection: float
    curiosity: float
    energy: float

    def as_dict(self) -> Dict[str, float]:
        return {dim: getattr(self, dim) for dim in DIMENSIONS}

    def clamped(self) -> "MoodVector":
        return MoodVector(**{dim: clamp(getattr(self, dim), *BOUNDS[dim]) for dim in DIMENSIONS})


@dataclass(frozen=True)
class EmotionEvent:
    label: str
    intensity: float
    trigger: str
    timestamp: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "intensity": self.intensity,
            "trigger": self.trigger,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmotionEvent":
        return cls(
            label=str(data.get("label", "")),
            intensity=float(data.get("intensity", 0.0)),
            trigger=str(data.get("trigger", "")),
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass(frozen=True)
class EmotionalSnapshot:
    """Immutable view of one user's emotional state."""

    mood: MoodVector
    baseline: MoodVector
    recent_emotions: Tuple[EmotionEvent, ...] = field(default_factory=tuple)
    last_updated: int = 0


@dataclass(frozen=True)
class MoodDescription:
    summary: str
    valence: str
    arousal: str
    connection: str
    curiosity: str


INITIAL_MOOD = MoodVector(valence=0.2, arousal=0.3, connection=0.1, curiosity=0.6, energy=0.5)
INITIAL_BASELINE = MoodVector(valence=0.1, arousal=0.3, connection=0.3, curiosity=0.5, energy=0.5)


def initial_state(now: int) -> EmotionalSnapshot:
    """Seed state for a freshly created user: mildly positive and curious."""
    seed = EmotionEvent(label="curiosity", intensity=0.7, trigger="meeting a new person", timestamp=now)
    return EmotionalSnapshot(
        mood=INITIAL_MOOD,
        baseline=INITIAL_BASELINE,
        recent_emotions=(seed,),
        last_updated=now,
    )


def _band(value: float, high: float, low: float, labels: Tuple[str, str, str]) -> str:
    above, below, middle = labels
    if value > high:
        return above
    if value < low:
        return below
    return middle


def describe_mood(mood: MoodVector) -> MoodDescription:
    """Discretize the mood into qualitative labels. Thresholds are strict."""
    valence = _band(mood.valence, 0.3, -0.3, ("positive", "down", "neutral"))
    arousal = _band(mood.arousal, 0.6, 0.3, ("energetic", "calm", "balanced"))
    connection = _band(mood.connection, 0.6, 0.3, ("deeply connected", "getting to know you", "comfortable"))
    curiosity = _band(mood.curiosity, 0.6, 0.3, ("fascinated", "settled", "interested"))
    summary = (
        f"Feeling {valence} and {arousal}, {connection} with you, "
        f"{curiosity} by our conversation."
    )
    return MoodDescription(
        summary=summary,
        valence=valence,
        arousal=arousal,
        connection=connection,
        curiosity=curiosity,
    )


class EmotionEngine:
    """Applies emotion events and baseline decay using an injected effect table."""

    def __init__(
        self,
        effects: EffectTable = DEFAULT_EMOTION_EFFECTS,
        decay_rate: float = DEFAULT_DECAY_RATE,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        if not 0.0 < decay_rate <= 1.0:
            raise ValueError("decay_rate must be in (0, 1]")
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.effects = effects if isinstance(effects, MappingProxyType) else _freeze(effects)
        self.decay_rate = decay_rate
        self.history_limit = history_limit

    def effect_for(self, label: str) -> Mapping[str, float]:
        """Effect vector for a label; unknown labels have no effect."""
        return self.effects.get(label.strip().lower(), MappingProxyType({}))

    def apply_emotion(
        self,
        state: EmotionalSnapshot,
        label: str,
        intensity: float,
        trigger: str,
        now: int,
    ) -> EmotionalSnapshot:
        # Intensity outside [0, 1] is clamped rather than rejected.
        scale = clamp(float(intensity), 0.0, 1.0)
        effect = self.effect_for(label)
        mood = MoodVector(
            **{dim: getattr(state.mood, dim) + effect.get(dim, 0.0) * scale for dim in DIMENSIONS}
        ).clamped()
        event = EmotionEvent(label=label, intensity=scale, trigger=trigger, timestamp=now)
        history = ((event,) + tuple(state.recent_emotions))[: self.history_limit]
        return replace(state, mood=mood, recent_emotions=history, last_updated=now)

    def decay(self, state: EmotionalSnapshot, now: int) -> EmotionalSnapshot:
        """Close ``decay_rate`` of the gap between each scalar and its baseline."""
        mood = MoodVector(
            **{
                dim: getattr(state.mood, dim)
                + (getattr(state.baseline, dim) - getattr(state.mood, dim)) * self.decay_rate
                for dim in DIMENSIONS
            }
        ).clamped()
        return replace(state, mood=mood, last_updated=now)

    def describe_mood(self, state: EmotionalSnapshot) -> MoodDescription:
        return describe_mood(state.mood)
