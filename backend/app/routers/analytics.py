"""
Analytics Router
Period rollups over stored sessions for the analytics dashboard.

Every endpoint takes either ``period`` (last N days, ending today) or an
explicit ``start_date``/``end_date`` range.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from study_engine import PeriodRollup, RollupUnavailableError, SessionRecord

from app.core.database import get_db
from app.models.schemas import ProductivityResponse
from app.services.analytics_service import build_productivity, period_for
from app.services.session_store import SqlSessionSource

logger = logging.getLogger("studysense.api.analytics")

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


def _period(
    period: Optional[int],
    start_date: Optional[date],
    end_date: Optional[date],
) -> PeriodRollup:
    try:
        return period_for(period, start_date=start_date, end_date=end_date)
    except ValueError as exc:
        raise HTTPException(400, str(exc))


def reporting_period(
    period: Optional[int] = Query(default=None, ge=1),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PeriodRollup:
    return _period(period, start_date, end_date)


def weekly_period(
    period: Optional[int] = Query(default=7, ge=1),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PeriodRollup:
    return _period(period, start_date, end_date)


def _load(db: Session, rollup: PeriodRollup, user_id: Optional[int]) -> List[SessionRecord]:
    try:
        return rollup.load(SqlSessionSource(db), user_id)
    except RollupUnavailableError as exc:
        raise HTTPException(503, str(exc))


def _envelope(period: PeriodRollup, data):
    return {
        "period": {"start": period.start.isoformat(), "end": period.end.isoformat(), "days": period.days},
        "data": data,
    }


@router.get("/overview")
def get_overview(
    rollup: PeriodRollup = Depends(reporting_period),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Completed sessions, study hours, average engagement and streak"""
    sessions = _load(db, rollup, user_id)
    return _envelope(rollup, rollup.overview(sessions).to_dict())


@router.get("/trends")
def get_trends(
    rollup: PeriodRollup = Depends(reporting_period),
    granularity: str = Query(default="daily"),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Daily engagement/attention/posture/blink-rate trend"""
    if granularity != "daily":
        raise HTTPException(400, "Only daily granularity is supported")
    sessions = _load(db, rollup, user_id)
    return _envelope(rollup, [asdict(p) for p in rollup.trends(sessions)])


@router.get("/study-patterns")
def get_study_patterns(
    rollup: PeriodRollup = Depends(reporting_period),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Study time by day-of-week/hour, streaks and session-length trend"""
    sessions = _load(db, rollup, user_id)
    return _envelope(rollup, rollup.study_patterns(sessions).to_dict())


@router.get("/engagement-analysis")
def get_engagement_analysis(
    rollup: PeriodRollup = Depends(reporting_period),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Engagement distribution, emotions, posture correlation and peak hours"""
    sessions = _load(db, rollup, user_id)
    return _envelope(rollup, rollup.engagement_analysis(sessions).to_dict())


@router.get("/health-report")
def get_health_report(
    rollup: PeriodRollup = Depends(reporting_period),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Eye and posture health over the period"""
    sessions = _load(db, rollup, user_id)
    return _envelope(rollup, rollup.health_report(sessions).to_dict())


@router.get("/productivity-score", response_model=ProductivityResponse)
def get_productivity_score(
    rollup: PeriodRollup = Depends(weekly_period),
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Overall productivity grade with its component scores"""
    sessions = _load(db, rollup, user_id)
    return build_productivity(sessions, rollup).to_dict()
