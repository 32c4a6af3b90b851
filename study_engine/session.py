"""
StudySense Study Session
Per-session context object wiring ingest, smoothing, health classification,
alerting and aggregation together.

One instance per live session; instances share no mutable state, so many
sessions can run side by side in the same process.  The host drives time by
calling ``tick()`` (normally once a second) and must call ``close()`` when
the session ends so that no timer keeps firing.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .aggregator import SessionAnalyticsSnapshot, aggregate_session
from .alerts import Alert, AlertEngine
from .config import EngineConfig
from .errors import OutOfOrderSampleError
from .health import HealthClassifier, HealthInputs, HealthState
from .samples import MetricSample, normalize_sample
from .scheduling import Scheduler, SystemClock
from .smoothing import SmoothingBuffer
from .utils import format_duration, safe_mean

logger = logging.getLogger("studysense.engine.session")

DURATION_TICK_SECONDS = 1.0


class StudySession:

    def __init__(
        self,
        session_id: Optional[str] = None,
        config: Optional[EngineConfig] = None,
        clock=None,
        started_at: Optional[float] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.config = config or EngineConfig()
        self.clock = clock or SystemClock()
        self.started_at = self.clock.now() if started_at is None else started_at

        self.scheduler = Scheduler(self.clock)
        self.buffer = SmoothingBuffer(self.scheduler, self.config)
        self.classifier = HealthClassifier(self.config)
        self.alert_engine = AlertEngine(self.config)

        self.alert_listeners: List[Callable[[Alert], None]] = []
        self.health_listeners: List[Callable[[HealthState], None]] = []

        self.closed = False
        self._final: Optional[SessionAnalyticsSnapshot] = None

        self.scheduler.every(DURATION_TICK_SECONDS, self._on_duration_tick, "duration")
        logger.info("Study session %s started", self.session_id)

    # ──────────────────────────────────────────────────────
    # Driving the session
    # ──────────────────────────────────────────────────────

    def ingest(self, raw: Optional[Mapping[str, Any]]) -> Optional[MetricSample]:
        """
        Normalize and store one raw record.  Returns the accepted sample, or
        None if the session is closed or the sample was out of order.
        """
        if self.closed:
            logger.warning("Ignoring sample for closed session %s", self.session_id)
            return None

        sample = normalize_sample(raw, self.clock.now())
        if not self.buffer.push(sample):
            return None
        self._reassess()
        return sample

    def ingest_batch(self, raws: Sequence[Optional[Mapping[str, Any]]]) -> List[MetricSample]:
        """
        Ingest several raw records, returning the accepted samples.

        In strict mode the whole batch is checked for ordering before any
        sample is stored, so a rejected batch leaves the history untouched.
        """
        if self.closed:
            logger.warning("Ignoring %d sample(s) for closed session %s", len(raws), self.session_id)
            return []

        now = self.clock.now()
        samples = [normalize_sample(raw, now) for raw in raws]
        if self.config.strict:
            last = self.buffer.last_sample
            previous = last.timestamp if last is not None else None
            for sample in samples:
                if previous is not None and sample.timestamp < previous:
                    raise OutOfOrderSampleError(sample.timestamp, previous)
                previous = sample.timestamp

        accepted = []
        for sample in samples:
            if self.buffer.push(sample):
                accepted.append(sample)
                self._reassess()
        return accepted

    def tick(self) -> int:
        """Run every due timer; returns how many fired."""
        if self.closed:
            return 0
        return self.scheduler.run_pending()

    def dismiss_alert(self, alert_id: str) -> bool:
        return self.alert_engine.dismiss(alert_id)

    def close(self) -> SessionAnalyticsSnapshot:
        """Stop all timers and freeze the session's analytics."""
        if not self.closed:
            self._final = aggregate_session(
                self.buffer.history, self.started_at, self.clock.now(), self.config
            )
            self.scheduler.cancel_all()
            self.closed = True
            logger.info(
                "Study session %s closed after %s (%d samples, engagement=%d)",
                self.session_id,
                format_duration(self._final.duration_seconds),
                len(self.buffer.history),
                self._final.engagement_score,
            )
        return self._final

    # ──────────────────────────────────────────────────────
    # Derived state
    # ──────────────────────────────────────────────────────

    @property
    def duration_seconds(self) -> float:
        end = self.clock.now()
        return max(end - self.started_at, 0.0)

    @property
    def health(self) -> HealthState:
        return self.classifier.state

    @property
    def active_alerts(self) -> List[Alert]:
        return self.alert_engine.active

    def health_inputs(self) -> HealthInputs:
        recent = list(self.buffer.recent)
        last = self.buffer.last_sample
        return HealthInputs(
            avg_blink_rate=safe_mean((s.blink_rate for s in recent), self.config.DEFAULT_BLINK_RATE),
            avg_posture_score=safe_mean((s.posture_score for s in recent), 100.0),
            yawn_count=last.yawn_count if last else 0,
            head_drops=last.head_drops if last else 0,
            micro_sleeps=last.micro_sleeps if last else 0,
            duration_seconds=self.duration_seconds,
        )

    def analytics(self) -> SessionAnalyticsSnapshot:
        """Final analytics once closed, otherwise the in-progress view."""
        if self._final is not None:
            return self._final
        return aggregate_session(self.buffer.history, self.started_at, self.clock.now(), self.config)

    def live_state(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "closed": self.closed,
            "duration_seconds": int(self.duration_seconds),
            "duration_label": format_duration(self.duration_seconds),
            "snapshot": self.buffer.snapshot().to_dict(),
            "chart": [p.to_dict() for p in self.buffer.chart_series()],
            "health": self.health.to_dict(),
            "alerts": [a.to_dict() for a in self.active_alerts],
            "analytics": self.analytics().to_dict(),
        }

    # ──────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────

    def _on_duration_tick(self, now: float) -> None:
        self._reassess()

    def _reassess(self) -> None:
        if self.classifier.update(self.health_inputs()):
            for listener in self.health_listeners:
                listener(self.classifier.state)

        duration = self.duration_seconds
        raised = self.alert_engine.evaluate(
            self.classifier.state,
            self.buffer.recent_posture_scores(self.config.POSTURE_ALERT_WINDOW),
            duration,
        )
        reminder = self.alert_engine.check_break_reminder(duration)
        if reminder is not None:
            raised.append(reminder)

        for alert in raised:
            for listener in self.alert_listeners:
                listener(alert)
