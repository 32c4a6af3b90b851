"""
StudySense Smoothing Buffer
Holds the session's sample history and exposes rate-limited display values.

Samples may arrive at any cadence.  Observers only see a new
SmoothedSnapshot when the value timer fires (every 3s by default) and a new
chart point when the chart timer fires (every 5s), so displayed numbers stay
stable for at least one full period.
"""

import logging
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, Dict, List, Optional

from . import scoring
from .config import EngineConfig
from .errors import OutOfOrderSampleError
from .samples import MetricSample
from .scheduling import Scheduler
from .utils import round_half_up

logger = logging.getLogger("studysense.engine.smoothing")


@dataclass(frozen=True)
class SmoothedSnapshot:
    engagement_score: int = 0
    posture_score: int = 0
    blink_rate: int = 0
    updated_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ChartPoint:
    time: float
    engagement: int
    attention: int
    posture: int
    blink_rate: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SmoothingBuffer:
    """
    Append-only sample history plus two periodic display refreshes.

    - ``history`` keeps every accepted sample (aggregation).
    - ``recent`` keeps the last DISPLAY_CAPACITY samples (live scoring/charts).
    """

    def __init__(self, scheduler: Scheduler, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.history: List[MetricSample] = []
        self.recent: Deque[MetricSample] = deque(maxlen=self.config.DISPLAY_CAPACITY)
        self.chart: Deque[ChartPoint] = deque(maxlen=self.config.CHART_MAX_POINTS)

        self._snapshot = SmoothedSnapshot()
        self.snapshot_updates = 0
        self.dropped_samples = 0

        self.snapshot_listeners: List[Callable[[SmoothedSnapshot], None]] = []
        self.chart_listeners: List[Callable[[ChartPoint], None]] = []

        scheduler.every(
            self.config.VALUE_SMOOTHING_INTERVAL, self._refresh_snapshot, "value-smoothing"
        )
        scheduler.every(
            self.config.CHART_SMOOTHING_INTERVAL, self._append_chart_point, "chart-smoothing"
        )

    # ──────────────────────────────────────────────────────
    # Ingest
    # ──────────────────────────────────────────────────────

    def push(self, sample: MetricSample) -> bool:
        """Append a sample; returns False if it was dropped as out-of-order."""
        last = self.last_sample
        if last is not None and sample.timestamp < last.timestamp:
            if self.config.strict:
                raise OutOfOrderSampleError(sample.timestamp, last.timestamp)
            self.dropped_samples += 1
            logger.warning(
                "Dropping out-of-order sample (%.3f < %.3f)",
                sample.timestamp, last.timestamp,
            )
            return False

        self.history.append(sample)
        self.recent.append(sample)
        return True

    @property
    def last_sample(self) -> Optional[MetricSample]:
        return self.history[-1] if self.history else None

    # ──────────────────────────────────────────────────────
    # Display values
    # ──────────────────────────────────────────────────────

    def snapshot(self) -> SmoothedSnapshot:
        """Last computed snapshot; zeros until the first refresh."""
        return self._snapshot

    def chart_series(self) -> List[ChartPoint]:
        return list(self.chart)

    def recent_posture_scores(self, count: int) -> List[float]:
        if count <= 0:
            return []
        return [s.posture_score for s in list(self.recent)[-count:]]

    def _refresh_snapshot(self, now: float) -> None:
        last = self.last_sample
        if last is None:
            snap = SmoothedSnapshot(updated_at=now)
        else:
            snap = SmoothedSnapshot(
                engagement_score=scoring.score(self.recent, self.config),
                posture_score=round_half_up(last.posture_score),
                blink_rate=round_half_up(last.blink_rate),
                updated_at=now,
            )
        self._snapshot = snap
        self.snapshot_updates += 1
        for listener in self.snapshot_listeners:
            listener(snap)

    def _append_chart_point(self, now: float) -> None:
        stats = scoring.window_stats(self.recent)
        last = self.last_sample
        point = ChartPoint(
            time=now,
            engagement=scoring.score(self.recent, self.config),
            attention=stats.attention_rate,
            posture=round_half_up(last.posture_score) if last else 0,
            blink_rate=round_half_up(last.blink_rate) if last else 0,
        )
        self.chart.append(point)
        for listener in self.chart_listeners:
            listener(point)
