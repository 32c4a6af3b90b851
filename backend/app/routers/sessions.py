"""
StudySense Sessions Router
===========================
Live study-session lifecycle: start, ingest samples, read smoothed state,
dismiss alerts, end.  A WebSocket endpoint streams samples in and pushes
snapshots/alerts out on a 1-second tick.

Persistence is delegated to ``session_store``; all scoring happens in the
engine session held by the registry.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from study_engine import StudyEngineError, StudySession

from app.core.config import settings
from app.core.database import get_db
from app.models.schemas import (
    IngestResult,
    LiveSessionState,
    SampleBatch,
    SessionAnalyticsResponse,
    SessionEnd,
    SessionRecordResponse,
    SessionStart,
    SessionStarted,
)
from app.models.study import StudySessionRecord
from app.services import session_store as store
from app.services.session_registry import get_registry
from app.services.websocket_manager import session_channel, ws_manager

logger = logging.getLogger("studysense.api.sessions")

router = APIRouter(tags=["Sessions"])


def _live_session(session_id: str) -> StudySession:
    session = get_registry().get(session_id)
    if session is None:
        raise HTTPException(404, "Live session not found")
    return session


def _ingest(session: StudySession, samples: List[Dict[str, Any]]) -> int:
    # Strict sessions reject the whole batch before storing anything
    try:
        return len(session.ingest_batch(samples))
    except StudyEngineError as exc:
        raise HTTPException(422, str(exc))


# ══════════════════════════════════════════════════════════
# REST endpoints
# ══════════════════════════════════════════════════════════

@router.post("/api/sessions", response_model=SessionStarted, status_code=201)
async def start_session(
    body: Optional[SessionStart] = None,
    db: Session = Depends(get_db),
):
    """Start a live study session"""
    body = body or SessionStart()
    session = get_registry().start()
    record_id = store.create_session_record(db, session, body.user_id)
    return SessionStarted(
        session_id=session.session_id,
        record_id=record_id,
        started_at=session.started_at,
    )


@router.post("/api/sessions/{session_id}/samples", response_model=IngestResult)
async def ingest_samples(session_id: str, batch: SampleBatch):
    """Ingest one or more raw samples from the sensing client"""
    session = _live_session(session_id)
    accepted = _ingest(session, batch.samples)
    session.tick()
    return IngestResult(accepted=accepted, dropped=len(batch.samples) - accepted)


@router.get("/api/sessions/{session_id}/live", response_model=LiveSessionState)
async def get_live_state(session_id: str):
    """Smoothed snapshot, chart series, health state, alerts and running analytics"""
    session = _live_session(session_id)
    session.tick()
    return session.live_state()


@router.delete("/api/sessions/{session_id}/alerts/{alert_id}")
async def dismiss_alert(session_id: str, alert_id: str):
    """Dismiss an active alert"""
    session = _live_session(session_id)
    if not session.dismiss_alert(alert_id):
        raise HTTPException(404, "Alert not active")
    return {"message": "Alert dismissed", "alert_id": alert_id}


@router.post("/api/sessions/{session_id}/end", response_model=SessionAnalyticsResponse)
async def end_session(
    session_id: str,
    body: Optional[SessionEnd] = None,
    db: Session = Depends(get_db),
):
    """End a live session, stop its timers and persist its analytics"""
    body = body or SessionEnd()
    session = get_registry().end(session_id)
    if session is None:
        raise HTTPException(404, "Live session not found")
    store.finalise_session_record(db, session, body.emotions)
    return session.analytics().to_dict()


@router.get("/api/sessions", response_model=List[SessionRecordResponse])
def list_sessions(
    skip: int = 0,
    limit: int = 20,
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """List stored study sessions"""
    query = db.query(StudySessionRecord)
    if user_id is not None:
        query = query.filter(StudySessionRecord.user_id == user_id)
    return (
        query.order_by(StudySessionRecord.started_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


# ══════════════════════════════════════════════════════════
# WebSocket endpoint
# ══════════════════════════════════════════════════════════

@router.websocket("/ws/sessions/{session_id}")
async def websocket_session(
    websocket: WebSocket,
    session_id: str,
    end_on_disconnect: bool = Query(default=True),
    db: Session = Depends(get_db),
):
    """
    Real-time study-session stream.

    Protocol:
    - Client sends samples:   {"type": "sample", "data": {...}}
    - Client dismisses:       {"type": "dismiss", "alert_id": "posture"}
    - Keep-alive:             {"type": "ping"}
    - Server pushes:          {"type": "snapshot" | "chart" | "health" | "alert", "data": {...}}

    The session's timers are driven from this loop; when the client
    disconnects the session is ended (unless ?end_on_disconnect=false).
    """
    channel = session_channel(session_id)
    registry = get_registry()
    session = registry.get(session_id)

    await ws_manager.connect(websocket, channel)
    if session is None:
        await websocket.send_json({"type": "error", "message": "Live session not found"})
        ws_manager.disconnect(websocket, channel)
        await websocket.close()
        return

    # Engine callbacks are synchronous; queue and flush after each step
    outbox: List[tuple] = []

    def on_snapshot(snap):
        outbox.append(("snapshot", snap.to_dict()))

    def on_chart(point):
        outbox.append(("chart", point.to_dict()))

    def on_health(state):
        outbox.append(("health", state.to_dict()))

    def on_alert(alert):
        outbox.append(("alert", alert.to_dict()))

    session.buffer.snapshot_listeners.append(on_snapshot)
    session.buffer.chart_listeners.append(on_chart)
    session.health_listeners.append(on_health)
    session.alert_listeners.append(on_alert)

    async def flush():
        while outbox:
            kind, data = outbox.pop(0)
            if kind == "alert":
                await ws_manager.send_alert(session_id, data)
            else:
                await ws_manager.send_session_update(session_id, kind, data)

    logger.info("Session stream connected (session=%s)", session_id)

    try:
        while True:
            try:
                raw = await asyncio.wait_for(websocket.receive_text(), timeout=settings.TICK_SECONDS)
            except asyncio.TimeoutError:
                raw = None

            if raw is not None:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if not isinstance(msg, dict):
                    logger.debug("Ignoring non-object frame on session %s", session_id)
                    continue

                msg_type = msg.get("type", "")

                if msg_type == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue

                if msg_type == "sample":
                    try:
                        session.ingest(msg.get("data"))
                    except StudyEngineError as exc:
                        await websocket.send_json({"type": "error", "message": str(exc)})

                elif msg_type == "dismiss":
                    dismissed = session.dismiss_alert(str(msg.get("alert_id", "")))
                    await websocket.send_json({
                        "type": "dismissed",
                        "alert_id": msg.get("alert_id"),
                        "ok": dismissed,
                    })

            session.tick()
            await flush()

    except WebSocketDisconnect:
        logger.info("Session stream disconnected (session=%s)", session_id)
    except Exception as e:
        logger.error("Session stream error: %s", e, exc_info=True)
    finally:
        ws_manager.disconnect(websocket, channel)
        session.buffer.snapshot_listeners.remove(on_snapshot)
        session.buffer.chart_listeners.remove(on_chart)
        session.health_listeners.remove(on_health)
        session.alert_listeners.remove(on_alert)
        if end_on_disconnect and registry.end(session_id) is not None:
            store.finalise_session_record(db, session)
