"""
StudySense Analytics Service
Supplies the productivity component formulas and runs period rollups over
sessions fetched from the store.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Sequence

from study_engine import PeriodRollup, ProductivityScore, SessionRecord, productivity_score
from study_engine.utils import safe_mean

from app.core.config import settings

logger = logging.getLogger("studysense.analytics")


def period_for(
    days: Optional[int] = None,
    today: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PeriodRollup:
    """
    Reporting period for a request.  An explicit ``start_date``/``end_date``
    range wins over ``days``; a missing end defaults to today and a missing
    start to DEFAULT_PERIOD_DAYS before the end.
    """
    today = today or datetime.utcnow().date()

    if start_date is None and end_date is None:
        days = days or settings.DEFAULT_PERIOD_DAYS
        days = min(max(days, 1), settings.MAX_PERIOD_DAYS)
        return PeriodRollup.last_days(days, today)

    end = end_date or today
    start = start_date or end - timedelta(days=settings.DEFAULT_PERIOD_DAYS - 1)
    if start > end:
        raise ValueError(f"start_date {start} is after end_date {end}")
    period = PeriodRollup(start=start, end=end)
    if period.days > settings.MAX_PERIOD_DAYS:
        raise ValueError(f"Date range exceeds {settings.MAX_PERIOD_DAYS} days")
    return period


def productivity_components(
    sessions: Sequence[SessionRecord], period: PeriodRollup
) -> Dict[str, float]:
    """
    consistency: share of days in the period with at least one session
    engagement:  mean session engagement
    health:      mean recorded session health score
    """
    selected = period.select(sessions)
    active_days = {s.day for s in selected}
    return {
        "consistency": 100.0 * len(active_days) / period.days,
        "engagement": safe_mean(s.analytics.engagement_score for s in selected),
        "health": safe_mean(s.health_score for s in selected if s.health_score is not None),
    }


def build_productivity(sessions: Sequence[SessionRecord], period: PeriodRollup) -> ProductivityScore:
    components = productivity_components(sessions, period)
    result = productivity_score(components)
    logger.debug(
        "Productivity %s..%s: %d (%s) from %s",
        period.start, period.end, result.overall_score, result.grade, components,
    )
    return result
