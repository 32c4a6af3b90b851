"""
Study Session Models
One row per monitored study session; written at start, finalised at end.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON
from datetime import datetime
from app.core.database import Base


class StudySessionRecord(Base):
    """Persisted analytics for a study session (one per live engine session)."""
    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True, index=True)
    engine_session_id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=True)
    status = Column(String(20), default="active")  # active, ended
    started_at = Column(DateTime, default=datetime.utcnow, index=True)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, default=0)
    engagement_score = Column(Integer, default=0)
    attention_rate = Column(Integer, default=0)
    avg_posture_score = Column(Float, default=0.0)
    avg_blink_rate = Column(Integer, default=0)
    distraction_count = Column(Integer, default=0)
    health_score = Column(Integer, nullable=True)
    total_samples = Column(Integer, default=0)
    emotions = Column(JSON, nullable=True)  # list of emotion tags
    summary = Column(JSON, nullable=True)
