"""
StudySense Session Aggregator
Reduces a full sample history into one SessionAnalyticsSnapshot.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Optional, Sequence

from . import scoring
from .config import EngineConfig
from .errors import InvalidDurationError
from .samples import MetricSample
from .utils import round_half_up

logger = logging.getLogger("studysense.engine.aggregator")


@dataclass(frozen=True)
class SessionAnalyticsSnapshot:
    engagement_score: int = 0
    attention_rate: int = 0
    avg_posture_score: float = 0.0
    avg_blink_rate: int = 0
    distraction_count: int = 0
    duration_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["avg_posture_score"] = round(self.avg_posture_score, 1)
        return data


def count_distractions(samples: Iterable[MetricSample]) -> int:
    """Count rising edges of ``has_phone``: a phone held in view counts once."""
    count = 0
    phone_in_view = False
    for sample in samples:
        if sample.has_phone and not phone_in_view:
            count += 1
        phone_in_view = sample.has_phone
    return count


def elapsed_seconds(started_at: float, now: float, strict: bool = False) -> int:
    elapsed = now - started_at
    if elapsed < 0:
        if strict:
            raise InvalidDurationError(f"Session start {started_at} is after now {now}")
        logger.warning("Clock went backwards (%.1fs); clamping duration to 0", elapsed)
        return 0
    return round_half_up(elapsed)


def aggregate_session(
    history: Sequence[MetricSample],
    started_at: float,
    now: float,
    config: Optional[EngineConfig] = None,
) -> SessionAnalyticsSnapshot:
    """
    Summarize a session.  Duration is wall-clock time since ``started_at``,
    independent of how many samples arrived.
    """
    config = config or EngineConfig()
    duration = elapsed_seconds(started_at, now, config.strict)

    if not history:
        return SessionAnalyticsSnapshot(duration_seconds=duration)

    stats = scoring.window_stats(history)
    return SessionAnalyticsSnapshot(
        engagement_score=scoring.engagement_from_components(
            stats.attention_rate, stats.avg_posture_score, stats.avg_blink_rate, config
        ),
        attention_rate=stats.attention_rate,
        avg_posture_score=stats.avg_posture_score,
        avg_blink_rate=stats.avg_blink_rate,
        distraction_count=count_distractions(history),
        duration_seconds=duration,
    )
