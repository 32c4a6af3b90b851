"""
Pydantic Schemas for API request/response validation
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


# ── Session Schemas ──────────────────────────────────────
class SessionStart(BaseModel):
    user_id: Optional[int] = None


class SessionEnd(BaseModel):
    emotions: List[str] = Field(default_factory=list)


class SampleBatch(BaseModel):
    # Raw sensing records; normalised by the engine, never rejected here
    samples: List[Dict[str, Any]] = Field(default_factory=list)


class IngestResult(BaseModel):
    accepted: int
    dropped: int


class SessionStarted(BaseModel):
    session_id: str
    record_id: Optional[int] = None
    started_at: float


class AlertResponse(BaseModel):
    id: str
    severity: str
    message: str
    action_label: Optional[str] = None


class SessionAnalyticsResponse(BaseModel):
    engagement_score: int
    attention_rate: int
    avg_posture_score: float
    avg_blink_rate: int
    distraction_count: int
    duration_seconds: int


class LiveSessionState(BaseModel):
    session_id: str
    closed: bool
    duration_seconds: int
    duration_label: str
    snapshot: Dict[str, Any]
    chart: List[Dict[str, Any]]
    health: Dict[str, Any]
    alerts: List[AlertResponse]
    analytics: SessionAnalyticsResponse


class SessionRecordResponse(BaseModel):
    id: int
    engine_session_id: str
    user_id: Optional[int] = None
    status: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: int
    engagement_score: int
    attention_rate: int
    avg_posture_score: float
    avg_blink_rate: int
    distraction_count: int
    health_score: Optional[int] = None

    class Config:
        from_attributes = True


# ── Analytics Schemas ────────────────────────────────────
class ProductivityResponse(BaseModel):
    overall_score: int
    grade: str
    components: Dict[str, int]
