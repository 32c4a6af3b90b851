"""
StudySense Engine Package
Aggregation and scoring engine for study-session behavioral metrics.

Usage:
    from study_engine import StudySession

    session = StudySession()
    session.ingest({"lookingAtScreen": True, "postureScore": 82, "blinkRate": 17})
    session.tick()                      # call about once a second
    print(session.live_state())
    summary = session.close()
"""

from .aggregator import SessionAnalyticsSnapshot, aggregate_session, count_distractions
from .alerts import Alert, AlertEngine, Severity
from .config import EngineConfig
from .errors import (
    InvalidDurationError,
    OutOfOrderSampleError,
    RollupUnavailableError,
    StudyEngineError,
)
from .health import HealthClassifier, HealthInputs, HealthState, Level
from .rollup import Overview, PeriodRollup, ProductivityScore, SessionRecord, productivity_score
from .samples import MetricSample, normalize_sample
from .scheduling import ManualClock, Scheduler, SystemClock
from .scoring import blink_compliance, score
from .session import StudySession
from .smoothing import ChartPoint, SmoothedSnapshot, SmoothingBuffer

__all__ = [
    "Alert",
    "AlertEngine",
    "ChartPoint",
    "EngineConfig",
    "HealthClassifier",
    "HealthInputs",
    "HealthState",
    "InvalidDurationError",
    "Level",
    "ManualClock",
    "MetricSample",
    "OutOfOrderSampleError",
    "Overview",
    "PeriodRollup",
    "ProductivityScore",
    "RollupUnavailableError",
    "Scheduler",
    "SessionAnalyticsSnapshot",
    "SessionRecord",
    "Severity",
    "SmoothedSnapshot",
    "SmoothingBuffer",
    "StudyEngineError",
    "StudySession",
    "SystemClock",
    "aggregate_session",
    "blink_compliance",
    "count_distractions",
    "normalize_sample",
    "productivity_score",
    "score",
]
