"""
StudySense Health Classifier
Derives eye-strain / fatigue levels and an overall 0-100 health score.

Eye strain compounds with low blink rate and session length; fatigue is driven
by yawns, head drops and micro-sleeps (any micro-sleep is a hard trigger).
Health-score deductions are independent and additive.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .config import EngineConfig
from .errors import InvalidDurationError

logger = logging.getLogger("studysense.engine.health")


class Level(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class HealthInputs:
    """Accumulated session signals fed to the classifier"""
    avg_blink_rate: float = 15.0
    avg_posture_score: float = 100.0
    yawn_count: int = 0
    head_drops: int = 0
    micro_sleeps: int = 0
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class HealthState:
    eye_strain_level: Level = Level.LOW
    fatigue_level: Level = Level.LOW
    health_score: int = 100

    @property
    def label(self) -> str:
        return health_label(self.health_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eye_strain_level": self.eye_strain_level.value,
            "fatigue_level": self.fatigue_level.value,
            "health_score": self.health_score,
            "label": self.label,
        }


def classify_eye_strain(avg_blink_rate: float, duration_seconds: float) -> Level:
    minutes = duration_seconds / 60.0
    if avg_blink_rate < 10 and minutes > 15:
        return Level.HIGH
    if avg_blink_rate < 12 and minutes > 30:
        return Level.HIGH
    if avg_blink_rate < 14:
        return Level.MEDIUM
    return Level.LOW


def classify_fatigue(yawn_count: int, head_drops: int, micro_sleeps: int) -> Level:
    if micro_sleeps > 0 or yawn_count > 5:
        return Level.HIGH
    if yawn_count > 2 or head_drops > 3:
        return Level.MEDIUM
    return Level.LOW


def compute_health_score(
    avg_posture_score: float,
    eye_strain: Level,
    fatigue: Level,
    duration_seconds: float,
) -> int:
    score = 100

    # Posture
    if avg_posture_score < 60:
        score -= 20
    elif avg_posture_score < 80:
        score -= 10

    # Eye strain
    if eye_strain is Level.HIGH:
        score -= 25
    elif eye_strain is Level.MEDIUM:
        score -= 15

    # Fatigue
    if fatigue is Level.HIGH:
        score -= 30
    elif fatigue is Level.MEDIUM:
        score -= 15

    # Long session without a break
    minutes = duration_seconds / 60.0
    if minutes > 90:
        score -= 20
    elif minutes > 60:
        score -= 10

    return max(score, 0)


def health_label(score: float) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


class HealthClassifier:
    """
    Per-session classifier.  Keeps the last state so callers can tell
    whether a re-classification actually changed anything.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.state = HealthState()

    def classify(self, inputs: HealthInputs) -> HealthState:
        duration = inputs.duration_seconds
        if duration < 0:
            if self.config.strict:
                raise InvalidDurationError(f"Negative session duration: {duration}")
            logger.warning("Clamping negative duration %.1fs to 0", duration)
            duration = 0.0

        eye_strain = classify_eye_strain(inputs.avg_blink_rate, duration)
        fatigue = classify_fatigue(inputs.yawn_count, inputs.head_drops, inputs.micro_sleeps)
        return HealthState(
            eye_strain_level=eye_strain,
            fatigue_level=fatigue,
            health_score=compute_health_score(
                inputs.avg_posture_score, eye_strain, fatigue, duration
            ),
        )

    def update(self, inputs: HealthInputs) -> bool:
        """Re-classify and store; returns True when the state changed."""
        new_state = self.classify(inputs)
        changed = new_state != self.state
        if changed and (
            new_state.eye_strain_level != self.state.eye_strain_level
            or new_state.fatigue_level != self.state.fatigue_level
        ):
            logger.info(
                "Health levels changed: eye_strain=%s fatigue=%s score=%d",
                new_state.eye_strain_level.value,
                new_state.fatigue_level.value,
                new_state.health_score,
            )
        self.state = new_state
        return changed
