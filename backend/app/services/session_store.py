"""
StudySense Session Store
=========================
Storage collaborator for the engine: writes session rows when a live session
starts and ends, and serves finished sessions back to the period rollups
through the ``SessionSource`` query interface.

The engine never touches the database; it only receives ``SessionRecord``s.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session as SASession

from study_engine import SessionAnalyticsSnapshot, SessionRecord, StudySession

from app.models.study import StudySessionRecord

logger = logging.getLogger("studysense.store")


def _to_utc_naive(epoch_seconds: float) -> datetime:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).replace(tzinfo=None)


# ─────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────

def create_session_record(
    db: SASession,
    session: StudySession,
    user_id: Optional[int],
) -> Optional[int]:
    """Insert an ``active`` row for a live session; returns its id."""
    try:
        row = StudySessionRecord(
            engine_session_id=session.session_id,
            user_id=user_id,
            status="active",
            started_at=_to_utc_naive(session.started_at),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("StudySession #%s created (user_id=%s)", row.id, user_id)
        return row.id
    except Exception as exc:
        logger.error("Failed to create StudySession row: %s", exc)
        db.rollback()
        return None


def finalise_session_record(
    db: SASession,
    session: StudySession,
    emotions: Sequence[str] = (),
) -> Optional[StudySessionRecord]:
    """Write the closed session's analytics onto its row."""
    analytics = session.analytics()
    try:
        row = (
            db.query(StudySessionRecord)
            .filter(StudySessionRecord.engine_session_id == session.session_id)
            .first()
        )
        if row is None:
            logger.warning("No StudySession row for engine session %s", session.session_id)
            return None

        row.status = "ended"
        row.ended_at = _to_utc_naive(session.clock.now())
        row.duration_seconds = analytics.duration_seconds
        row.engagement_score = analytics.engagement_score
        row.attention_rate = analytics.attention_rate
        row.avg_posture_score = analytics.avg_posture_score
        row.avg_blink_rate = analytics.avg_blink_rate
        row.distraction_count = analytics.distraction_count
        row.health_score = session.health.health_score
        row.total_samples = len(session.buffer.history)
        row.emotions = list(emotions)
        row.summary = {
            **analytics.to_dict(),
            "health": session.health.to_dict(),
            "dropped_samples": session.buffer.dropped_samples,
        }
        db.commit()
        db.refresh(row)
        logger.info(
            "StudySession #%s finalised: %ds, engagement=%d, distractions=%d",
            row.id, row.duration_seconds, row.engagement_score, row.distraction_count,
        )
        return row
    except Exception as exc:
        logger.error("Failed to finalise StudySession %s: %s", session.session_id, exc)
        db.rollback()
        return None


# ─────────────────────────────────────────────────────────
# Rollup query interface
# ─────────────────────────────────────────────────────────

def to_session_record(row: StudySessionRecord) -> SessionRecord:
    return SessionRecord(
        started_at=row.started_at,
        analytics=SessionAnalyticsSnapshot(
            engagement_score=row.engagement_score or 0,
            attention_rate=row.attention_rate or 0,
            avg_posture_score=row.avg_posture_score or 0.0,
            avg_blink_rate=row.avg_blink_rate or 0,
            distraction_count=row.distraction_count or 0,
            duration_seconds=row.duration_seconds or 0,
        ),
        health_score=row.health_score,
        emotions=tuple(row.emotions or ()),
    )


class SqlSessionSource:
    """``SessionSource`` backed by the ``study_sessions`` table (ended sessions only)."""

    def __init__(self, db: SASession):
        self.db = db

    def fetch_sessions(
        self, user_id: Optional[int], start: date, end: date
    ) -> List[SessionRecord]:
        query = self.db.query(StudySessionRecord).filter(
            StudySessionRecord.status == "ended",
            StudySessionRecord.started_at >= datetime.combine(start, time.min),
            StudySessionRecord.started_at < datetime.combine(end + timedelta(days=1), time.min),
        )
        if user_id is not None:
            query = query.filter(StudySessionRecord.user_id == user_id)
        rows = query.order_by(StudySessionRecord.started_at).all()
        return [to_session_record(r) for r in rows]
