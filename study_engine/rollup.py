"""
StudySense Period Rollup
Pure reductions over many finished sessions for a reporting period:
daily trends, study patterns, engagement analysis, health report and the
productivity grade.

Every function takes the caller-supplied session list and returns fresh
objects; nothing is cached between calls.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np

from .aggregator import SessionAnalyticsSnapshot
from .errors import RollupUnavailableError
from .scoring import blink_compliance
from .utils import clamp, round_half_up

logger = logging.getLogger("studysense.engine.rollup")

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

ENGAGEMENT_BANDS: Tuple[Tuple[int, int], ...] = ((0, 20), (20, 40), (40, 60), (60, 80), (80, 100))

# (label, lower bound inclusive, upper bound exclusive)
POSTURE_BANDS: Tuple[Tuple[str, float, float], ...] = (
    ("poor", 0.0, 50.0),
    ("fair", 50.0, 75.0),
    ("good", 75.0, 101.0),
)

TOP_EMOTIONS = 6
TOP_PEAK_HOURS = 5

LOW_BLINK_RATE = 12
POOR_POSTURE = 60

DEFAULT_PRODUCTIVITY_WEIGHTS: Dict[str, float] = {
    "consistency": 0.3,
    "engagement": 0.4,
    "health": 0.3,
}

GRADE_CUTOFFS: Tuple[Tuple[int, str], ...] = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


# ── Inputs ───────────────────────────────────────────────

@dataclass(frozen=True)
class SessionRecord:
    """A finished session as handed over by the storage collaborator"""
    started_at: datetime
    analytics: SessionAnalyticsSnapshot
    health_score: Optional[float] = None
    emotions: Tuple[str, ...] = ()

    @property
    def day(self) -> date:
        return self.started_at.date()

    @property
    def minutes(self) -> float:
        return self.analytics.duration_seconds / 60.0


class SessionSource(Protocol):
    def fetch_sessions(
        self, user_id: Optional[int], start: date, end: date
    ) -> List[SessionRecord]:
        ...


# ── Outputs ──────────────────────────────────────────────

@dataclass(frozen=True)
class TrendPoint:
    date: str
    sessions: int
    avg_engagement: float
    avg_attention: float
    avg_posture: float
    avg_blink_rate: float


@dataclass(frozen=True)
class DayBucket:
    day: str
    day_index: int
    sessions: int
    total_time: float  # minutes


@dataclass(frozen=True)
class HourBucket:
    hour: int
    time_label: str
    sessions: int
    total_time: float  # minutes


@dataclass(frozen=True)
class Streaks:
    current: int = 0
    longest: int = 0


@dataclass(frozen=True)
class SessionLengthPoint:
    date: str
    avg_length: float  # minutes


@dataclass(frozen=True)
class StudyPatterns:
    by_day_of_week: List[DayBucket]
    by_hour_of_day: List[HourBucket]
    streaks: Streaks
    session_length_trend: List[SessionLengthPoint]
    total_minutes: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EngagementAnalysis:
    engagement_distribution: List[Dict[str, Any]]
    emotion_distribution: List[Dict[str, Any]]
    posture_engagement_correlation: List[Dict[str, Any]]
    peak_performance_times: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HealthReport:
    overall_health_score: int
    scores: Dict[str, int]
    metrics: Dict[str, float]
    trend: List[Dict[str, Any]]
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Overview:
    completed_sessions: int = 0
    total_hours: float = 0.0
    this_week_hours: float = 0.0
    avg_engagement: int = 0
    streak: int = 0
    longest_streak: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProductivityScore:
    overall_score: int
    grade: str
    components: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Helpers ──────────────────────────────────────────────

def _mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def _by_day(sessions: Sequence[SessionRecord]) -> Dict[date, List[SessionRecord]]:
    grouped: Dict[date, List[SessionRecord]] = defaultdict(list)
    for s in sessions:
        grouped[s.day].append(s)
    return dict(sorted(grouped.items()))


def select_sessions(
    sessions: Sequence[SessionRecord], start: date, end: date
) -> List[SessionRecord]:
    """Sessions whose start day falls in ``[start, end]``, in input order."""
    return [s for s in sessions if start <= s.day <= end]


# ── Trend ────────────────────────────────────────────────

def build_trends(sessions: Sequence[SessionRecord]) -> List[TrendPoint]:
    """One point per calendar day that has at least one session."""
    points = []
    for day, group in _by_day(sessions).items():
        points.append(TrendPoint(
            date=day.isoformat(),
            sessions=len(group),
            avg_engagement=round(_mean([s.analytics.engagement_score for s in group]), 1),
            avg_attention=round(_mean([s.analytics.attention_rate for s in group]), 1),
            avg_posture=round(_mean([s.analytics.avg_posture_score for s in group]), 1),
            avg_blink_rate=round(_mean([s.analytics.avg_blink_rate for s in group]), 1),
        ))
    return points


# ── Study patterns ───────────────────────────────────────

def compute_streaks(days: Sequence[date], today: date) -> Streaks:
    """
    ``current`` counts consecutive days ending at ``today`` (0 if today has
    no session); ``longest`` is the longest consecutive run anywhere.
    """
    active = set(days)
    if not active:
        return Streaks()

    current = 0
    cursor = today
    while cursor in active:
        current += 1
        cursor -= timedelta(days=1)

    longest = 0
    run = 0
    previous: Optional[date] = None
    for day in sorted(active):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    return Streaks(current=current, longest=longest)


def study_patterns(sessions: Sequence[SessionRecord], today: date) -> StudyPatterns:
    day_minutes = [0.0] * 7
    day_counts = [0] * 7
    hour_minutes = [0.0] * 24
    hour_counts = [0] * 24

    for s in sessions:
        weekday = s.started_at.weekday()
        hour = s.started_at.hour
        day_minutes[weekday] += s.minutes
        day_counts[weekday] += 1
        hour_minutes[hour] += s.minutes
        hour_counts[hour] += 1

    length_trend = [
        SessionLengthPoint(date=day.isoformat(), avg_length=round(_mean([s.minutes for s in group]), 1))
        for day, group in _by_day(sessions).items()
    ]

    return StudyPatterns(
        by_day_of_week=[
            DayBucket(DAY_NAMES[i], i, day_counts[i], round(day_minutes[i], 1))
            for i in range(7)
        ],
        by_hour_of_day=[
            HourBucket(h, f"{h:02d}:00", hour_counts[h], round(hour_minutes[h], 1))
            for h in range(24)
        ],
        streaks=compute_streaks([s.day for s in sessions], today),
        session_length_trend=length_trend,
        total_minutes=round(sum(day_minutes), 1),
    )


# ── Engagement analysis ──────────────────────────────────

def _engagement_band(score: float) -> int:
    for index, (low, high) in enumerate(ENGAGEMENT_BANDS):
        if low <= score < high:
            return index
    return len(ENGAGEMENT_BANDS) - 1


def engagement_analysis(sessions: Sequence[SessionRecord]) -> EngagementAnalysis:
    band_counts = [0] * len(ENGAGEMENT_BANDS)
    for s in sessions:
        band_counts[_engagement_band(s.analytics.engagement_score)] += 1

    distribution = [
        {"range": f"{low}-{high}", "count": band_counts[i]}
        for i, (low, high) in enumerate(ENGAGEMENT_BANDS)
    ]

    emotions = Counter(tag for s in sessions for tag in s.emotions if tag)
    emotion_distribution = [
        {"emotion": emotion, "count": count}
        for emotion, count in sorted(emotions.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_EMOTIONS]
    ]

    correlation = []
    for label, low, high in POSTURE_BANDS:
        group = [s for s in sessions if low <= s.analytics.avg_posture_score < high]
        correlation.append({
            "posture_range": label,
            "sessions": len(group),
            "avg_engagement": round(_mean([s.analytics.engagement_score for s in group]), 1),
        })

    by_hour: Dict[int, List[float]] = defaultdict(list)
    for s in sessions:
        by_hour[s.started_at.hour].append(s.analytics.engagement_score)
    ranked = sorted(by_hour.items(), key=lambda kv: (-_mean(kv[1]), kv[0]))[:TOP_PEAK_HOURS]
    peak_times = [
        {
            "hour": hour,
            "time_label": f"{hour:02d}:00",
            "avg_engagement": round(_mean(scores), 1),
            "sessions": len(scores),
        }
        for hour, scores in ranked
    ]

    return EngagementAnalysis(
        engagement_distribution=distribution,
        emotion_distribution=emotion_distribution,
        posture_engagement_correlation=correlation,
        peak_performance_times=peak_times,
    )


# ── Health report ────────────────────────────────────────

def health_report(sessions: Sequence[SessionRecord]) -> HealthReport:
    if not sessions:
        return HealthReport(
            overall_health_score=0,
            scores={"eye_health": 0, "posture_health": 0},
            metrics={
                "avg_blink_rate": 0.0,
                "low_blink_rate_percentage": 0.0,
                "avg_posture": 0.0,
                "poor_posture_percentage": 0.0,
            },
            trend=[],
        )

    blink_rates = [s.analytics.avg_blink_rate for s in sessions]
    postures = [s.analytics.avg_posture_score for s in sessions]
    total = len(sessions)

    eye_health = round_half_up(_mean([blink_compliance(b) for b in blink_rates]))
    posture_health = round_half_up(_mean(postures))
    recorded = [s.health_score for s in sessions if s.health_score is not None]
    overall = round_half_up(_mean(recorded)) if recorded else round_half_up((eye_health + posture_health) / 2)

    low_blink_pct = round(100.0 * sum(1 for b in blink_rates if b < LOW_BLINK_RATE) / total, 1)
    poor_posture_pct = round(100.0 * sum(1 for p in postures if p < POOR_POSTURE) / total, 1)

    trend = []
    for day, group in _by_day(sessions).items():
        day_scores = [s.health_score for s in group if s.health_score is not None]
        trend.append({
            "date": day.isoformat(),
            "blink_rate": round(_mean([s.analytics.avg_blink_rate for s in group]), 1),
            "posture": round(_mean([s.analytics.avg_posture_score for s in group]), 1),
            "health_score": round(_mean(day_scores), 1) if day_scores else None,
        })

    recommendations = []
    if low_blink_pct > 0:
        recommendations.append(
            "Blink rate was low in some sessions. Follow the 20-20-20 rule: every 20 minutes, "
            "look at something 20 feet away for 20 seconds."
        )
    if poor_posture_pct > 0:
        recommendations.append("Adjust your chair and screen height to keep a neutral posture.")
    if any(s.analytics.duration_seconds > 5400 for s in sessions):
        recommendations.append("Split sessions longer than 90 minutes with a proper break.")

    return HealthReport(
        overall_health_score=overall,
        scores={"eye_health": eye_health, "posture_health": posture_health},
        metrics={
            "avg_blink_rate": round(_mean(blink_rates), 1),
            "low_blink_rate_percentage": low_blink_pct,
            "avg_posture": round(_mean(postures), 1),
            "poor_posture_percentage": poor_posture_pct,
        },
        trend=trend,
        recommendations=recommendations,
    )


# ── Overview ─────────────────────────────────────────────

def overview(sessions: Sequence[SessionRecord], today: date) -> Overview:
    """Headline numbers: session count, study hours, mean engagement, streaks."""
    if not sessions:
        return Overview()

    week_start = today - timedelta(days=6)
    streaks = compute_streaks([s.day for s in sessions], today)
    return Overview(
        completed_sessions=len(sessions),
        total_hours=round(sum(s.minutes for s in sessions) / 60.0, 1),
        this_week_hours=round(
            sum(s.minutes for s in sessions if week_start <= s.day <= today) / 60.0, 1
        ),
        avg_engagement=round_half_up(_mean([s.analytics.engagement_score for s in sessions])),
        streak=streaks.current,
        longest_streak=streaks.longest,
    )


# ── Productivity─────────────────────────────────────────

def grade_for(score: float) -> str:
    for cutoff, grade in GRADE_CUTOFFS:
        if score >= cutoff:
            return grade
    return "F"


def productivity_score(
    components: Mapping[str, float],
    weights: Optional[Mapping[str, float]] = None,
) -> ProductivityScore:
    """
    Weighted blend of independently computed 0-100 component scores.
    Missing components count as 0; each is clamped before weighting.
    """
    weights = weights or DEFAULT_PRODUCTIVITY_WEIGHTS
    clamped = {name: clamp(float(components.get(name, 0.0) or 0.0)) for name in weights}
    total_weight = sum(weights.values())
    if total_weight <= 0:
        raise ValueError("Productivity weights must sum to a positive value")

    overall = round_half_up(sum(clamped[name] * w for name, w in weights.items()) / total_weight)
    return ProductivityScore(
        overall_score=overall,
        grade=grade_for(overall),
        components={name: round_half_up(value) for name, value in clamped.items()},
    )


# ── Period wrapper ───────────────────────────────────────

@dataclass(frozen=True)
class PeriodRollup:
    """A reporting period; all methods filter to it and reduce."""
    start: date
    end: date

    @classmethod
    def last_days(cls, days: int, today: date) -> "PeriodRollup":
        days = max(int(days), 1)
        return cls(start=today - timedelta(days=days - 1), end=today)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def select(self, sessions: Sequence[SessionRecord]) -> List[SessionRecord]:
        return select_sessions(sessions, self.start, self.end)

    def trends(self, sessions: Sequence[SessionRecord]) -> List[TrendPoint]:
        return build_trends(self.select(sessions))

    def study_patterns(self, sessions: Sequence[SessionRecord]) -> StudyPatterns:
        return study_patterns(self.select(sessions), today=self.end)

    def engagement_analysis(self, sessions: Sequence[SessionRecord]) -> EngagementAnalysis:
        return engagement_analysis(self.select(sessions))

    def health_report(self, sessions: Sequence[SessionRecord]) -> HealthReport:
        return health_report(self.select(sessions))

    def overview(self, sessions: Sequence[SessionRecord]) -> Overview:
        return overview(self.select(sessions), today=self.end)

    def load(self, source: SessionSource, user_id: Optional[int] = None) -> List[SessionRecord]:
        """
        Fetch the period's sessions from the storage collaborator.
        Failures surface as RollupUnavailableError; retrying is the caller's call.
        """
        try:
            return list(source.fetch_sessions(user_id, self.start, self.end))
        except Exception as exc:
            logger.error(
                "Session fetch failed for %s..%s (user_id=%s): %s",
                self.start, self.end, user_id, exc,
            )
            raise RollupUnavailableError(f"Could not load sessions: {exc}") from exc
