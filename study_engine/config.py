"""
StudySense Engine Configuration
Centralized thresholds and cadences for the scoring/alerting engine.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration for smoothing, health and alert thresholds"""

    # Smoothing cadences (seconds)
    VALUE_SMOOTHING_INTERVAL: float = 3.0
    CHART_SMOOTHING_INTERVAL: float = 5.0

    # Display-bounded history
    DISPLAY_CAPACITY: int = 60
    CHART_MAX_POINTS: int = 60

    # Engagement weights
    WEIGHT_ATTENTION: float = 0.5
    WEIGHT_POSTURE: float = 0.3
    WEIGHT_BLINK: float = 0.2

    # Ideal blink rate window (BPM)
    IDEAL_BLINK_MIN: float = 15.0
    IDEAL_BLINK_MAX: float = 25.0
    BLINK_MAX_DISTANCE: float = 50.0

    # Neutral blink rate when no blink data has arrived yet
    DEFAULT_BLINK_RATE: float = 15.0

    # Alert thresholds
    POSTURE_ALERT_WINDOW: int = 5
    POSTURE_ALERT_THRESHOLD: float = 50.0
    LONG_SESSION_SECONDS: float = 5400.0
    BREAK_REMINDER_MINUTES: int = 20

    # Development mode: programmer errors raise instead of degrading
    strict: bool = False
