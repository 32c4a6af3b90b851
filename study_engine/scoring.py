"""
StudySense Composite Scorer
Maps a window of MetricSamples to a single 0-100 engagement score.

    engagement = attention_rate * 0.5 + avg_posture * 0.3 + blink_compliance * 0.2

Missing posture counts as 0 rather than being excluded, so a window with no
posture data is pulled toward 0.
"""

from dataclasses import dataclass
from typing import Sequence

from .config import EngineConfig
from .samples import MetricSample
from .utils import clamp, round_half_up

DEFAULT_CONFIG = EngineConfig()


@dataclass(frozen=True)
class WindowStats:
    """Per-window reductions shared by the scorer and the session aggregator"""
    total: int = 0
    attention_rate: int = 0        # % of samples looking at the screen, rounded
    avg_posture_score: float = 0.0
    avg_blink_rate: int = 0        # BPM, rounded


def window_stats(window: Sequence[MetricSample]) -> WindowStats:
    total = len(window)
    if total == 0:
        return WindowStats()

    focused = 0
    posture_sum = 0.0
    blink_sum = 0.0
    for sample in window:
        if sample.looking_at_screen:
            focused += 1
        posture_sum += sample.posture_score
        blink_sum += sample.blink_rate

    return WindowStats(
        total=total,
        attention_rate=round_half_up(focused / total * 100),
        avg_posture_score=posture_sum / total,
        avg_blink_rate=round_half_up(blink_sum / total),
    )


def blink_compliance(blink_rate: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    100 inside the ideal blink window, decaying linearly to 0 as the distance
    from the nearest bound approaches ``BLINK_MAX_DISTANCE``.
    """
    if config.IDEAL_BLINK_MIN <= blink_rate <= config.IDEAL_BLINK_MAX:
        return 100.0

    distance = min(
        abs(blink_rate - config.IDEAL_BLINK_MIN),
        abs(blink_rate - config.IDEAL_BLINK_MAX),
    )
    penalty = min(distance / config.BLINK_MAX_DISTANCE, 1.0)
    return max(0.0, 100.0 * (1.0 - penalty))


def engagement_from_components(
    attention_rate: float,
    avg_posture_score: float,
    avg_blink_rate: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> int:
    raw = (
        attention_rate * config.WEIGHT_ATTENTION
        + avg_posture_score * config.WEIGHT_POSTURE
        + blink_compliance(avg_blink_rate, config) * config.WEIGHT_BLINK
    )
    return int(clamp(round_half_up(raw)))


def score(window: Sequence[MetricSample], config: EngineConfig = DEFAULT_CONFIG) -> int:
    """Engagement score for a window; an empty window scores 0."""
    stats = window_stats(window)
    if stats.total == 0:
        return 0
    return engagement_from_components(
        stats.attention_rate, stats.avg_posture_score, stats.avg_blink_rate, config
    )
