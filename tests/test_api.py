import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from study_engine import EngineConfig, ManualClock

from app.core.database import Base, get_db
from app.models.study import StudySessionRecord
from app.services import session_store
from app.services.session_registry import reset_registry
from main import app

GOOD = {"lookingAtScreen": True, "postureScore": 80, "blinkRate": 18}


@pytest.fixture
def db_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def live_clock():
    clock = ManualClock(start=float(int(time.time())))
    reset_registry(config=EngineConfig(), clock=clock)
    yield clock
    reset_registry()


@pytest.fixture
def client(db_factory, live_clock):
    return TestClient(app)


def _add_ended(factory, days_ago, engagement, health, hour=10, minutes=30, posture=75.0):
    started = datetime.utcnow().replace(hour=hour, minute=0, second=0, microsecond=0) - timedelta(days=days_ago)
    db = factory()
    db.add(StudySessionRecord(
        engine_session_id=f"seed-{days_ago}-{hour}",
        status="ended",
        started_at=started,
        ended_at=started + timedelta(minutes=minutes),
        duration_seconds=minutes * 60,
        engagement_score=engagement,
        attention_rate=80,
        avg_posture_score=posture,
        avg_blink_rate=16,
        distraction_count=0,
        health_score=health,
        emotions=["focused"],
    ))
    db.commit()
    db.close()


def test_health_endpoint(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["live_sessions"] == 0
    assert resp.json()["ws_connections"] == 0
    assert resp.json()["service"] == "StudySense"


def test_live_session_flow(client, live_clock):
    resp = client.post("/api/sessions", json={"user_id": 7})
    assert resp.status_code == 201
    session_id = resp.json()["session_id"]
    assert resp.json()["record_id"] is not None

    samples = [
        dict(GOOD, hasPhone=False),
        dict(GOOD, hasPhone=True),
        dict(GOOD, hasPhone=False),
    ] + [dict(GOOD, postureScore=30, hasPhone=True)] * 5
    resp = client.post(f"/api/sessions/{session_id}/samples", json={"samples": samples})
    assert resp.status_code == 200
    assert resp.json() == {"accepted": 8, "dropped": 0}

    live_clock.advance(3.0)
    resp = client.get(f"/api/sessions/{session_id}/live")
    assert resp.status_code == 200
    state = resp.json()
    assert state["duration_seconds"] == 3
    assert state["snapshot"]["updated_at"] is not None
    assert "posture" in [a["id"] for a in state["alerts"]]

    resp = client.delete(f"/api/sessions/{session_id}/alerts/posture")
    assert resp.status_code == 200
    resp = client.delete(f"/api/sessions/{session_id}/alerts/posture")
    assert resp.status_code == 404

    resp = client.post(f"/api/sessions/{session_id}/end", json={"emotions": ["focused"]})
    assert resp.status_code == 200
    summary = resp.json()
    assert summary["distraction_count"] == 2
    assert summary["duration_seconds"] == 3
    assert summary["attention_rate"] == 100

    assert client.get(f"/api/sessions/{session_id}/live").status_code == 404
    assert client.post(f"/api/sessions/{session_id}/end").status_code == 404

    rows = client.get("/api/sessions", params={"user_id": 7}).json()
    assert len(rows) == 1
    assert rows[0]["status"] == "ended"
    assert rows[0]["engine_session_id"] == session_id
    assert rows[0]["distraction_count"] == 2


def test_samples_for_unknown_session(client):
    resp = client.post("/api/sessions/missing/samples", json={"samples": [GOOD]})
    assert resp.status_code == 404


def test_strict_ingest_rejects_out_of_order_batch_whole(client, live_clock):
    registry = reset_registry(config=EngineConfig(strict=True), clock=live_clock)
    session_id = client.post("/api/sessions").json()["session_id"]
    resp = client.post(
        f"/api/sessions/{session_id}/samples",
        json={"samples": [dict(GOOD, timestamp=2_000_000_000), dict(GOOD, timestamp=1_000_000_000)]},
    )
    assert resp.status_code == 422
    assert registry.get(session_id).buffer.history == []


def test_analytics_endpoints(client, db_factory):
    _add_ended(db_factory, 0, engagement=90, health=80)
    _add_ended(db_factory, 1, engagement=70, health=60, hour=15)
    _add_ended(db_factory, 40, engagement=10, health=10)

    trends = client.get("/api/analytics/trends", params={"period": 7}).json()
    assert trends["period"]["days"] == 7
    assert len(trends["data"]) == 2

    patterns = client.get("/api/analytics/study-patterns", params={"period": 7}).json()["data"]
    assert patterns["streaks"] == {"current": 2, "longest": 2}
    assert patterns["total_minutes"] == 60.0

    analysis = client.get("/api/analytics/engagement-analysis", params={"period": 7}).json()["data"]
    assert analysis["emotion_distribution"] == [{"emotion": "focused", "count": 2}]

    report = client.get("/api/analytics/health-report", params={"period": 7}).json()["data"]
    assert report["overall_health_score"] == 70

    productivity = client.get("/api/analytics/productivity-score").json()
    # consistency 2/7 days, engagement 80, health 70
    assert productivity["components"] == {"consistency": 29, "engagement": 80, "health": 70}
    assert productivity["grade"] == "D"


def test_trends_rejects_unknown_granularity(client):
    resp = client.get("/api/analytics/trends", params={"granularity": "weekly"})
    assert resp.status_code == 400


def test_analytics_storage_failure_is_503(client, monkeypatch):
    def broken(self, user_id, start, end):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(session_store.SqlSessionSource, "fetch_sessions", broken)
    resp = client.get("/api/analytics/health-report")
    assert resp.status_code == 503


def test_websocket_ping_and_unknown_session(client):
    with client.websocket_connect("/ws/sessions/missing") as ws:
        assert ws.receive_json()["type"] == "error"

    session_id = client.post("/api/sessions").json()["session_id"]
    with client.websocket_connect(f"/ws/sessions/{session_id}?end_on_disconnect=false") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_websocket_ignores_non_object_frames(client):
    session_id = client.post("/api/sessions").json()["session_id"]
    with client.websocket_connect(f"/ws/sessions/{session_id}") as ws:
        ws.send_text("[1, 2, 3]")
        ws.send_text("42")
        ws.send_text("not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

    rows = client.get("/api/sessions").json()
    assert rows[0]["engine_session_id"] == session_id
    assert rows[0]["status"] == "ended"


def _receive_until(ws, kind, limit=10):
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == kind:
            return message
    raise AssertionError(f"no {kind!r} message received")


def test_websocket_streams_samples_and_pushes_updates(client, live_clock):
    session_id = client.post("/api/sessions").json()["session_id"]
    with client.websocket_connect(f"/ws/sessions/{session_id}?end_on_disconnect=false") as ws:
        for _ in range(3):
            ws.send_json({"type": "sample", "data": GOOD})

        live_clock.advance(3.0)
        ws.send_json({"type": "tick"})
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["session_id"] == session_id
        assert snapshot["data"]["engagement_score"] == 94

        live_clock.advance(2.0)
        ws.send_json({"type": "tick"})
        chart = ws.receive_json()
        assert chart["type"] == "chart"
        assert chart["data"]["engagement"] == 94

        for _ in range(3):
            ws.send_json({"type": "sample", "data": dict(GOOD, postureScore=10)})
        alert = _receive_until(ws, "alert")
        assert alert["data"]["id"] == "posture"
        assert alert["data"]["severity"] == "warning"

        ws.send_json({"type": "dismiss", "alert_id": "posture"})
        dismissed = _receive_until(ws, "dismissed")
        assert dismissed == {"type": "dismissed", "alert_id": "posture", "ok": True}

    state = client.get(f"/api/sessions/{session_id}/live").json()
    assert len(state["chart"]) == 1
    assert "posture" not in [a["id"] for a in state["alerts"]]
    assert state["analytics"]["attention_rate"] == 100


def test_overview_endpoint(client, db_factory):
    _add_ended(db_factory, 0, engagement=90, health=80)
    _add_ended(db_factory, 1, engagement=70, health=60, hour=15)
    _add_ended(db_factory, 40, engagement=10, health=10)

    body = client.get("/api/analytics/overview", params={"period": 7}).json()
    assert body["period"]["days"] == 7
    assert body["data"] == {
        "completed_sessions": 2,
        "total_hours": 1.0,
        "this_week_hours": 1.0,
        "avg_engagement": 80,
        "streak": 2,
        "longest_streak": 2,
    }


def test_analytics_accept_explicit_date_range(client, db_factory):
    _add_ended(db_factory, 0, engagement=90, health=80)
    _add_ended(db_factory, 40, engagement=10, health=10)

    today = datetime.utcnow().date()
    params = {
        "start_date": (today - timedelta(days=45)).isoformat(),
        "end_date": (today - timedelta(days=30)).isoformat(),
    }
    body = client.get("/api/analytics/trends", params=params).json()
    assert body["period"] == {"start": params["start_date"], "end": params["end_date"], "days": 16}
    assert len(body["data"]) == 1
    assert body["data"][0]["avg_engagement"] == 10.0

    overview = client.get("/api/analytics/overview", params=params).json()["data"]
    assert overview["completed_sessions"] == 1
    assert overview["streak"] == 0


def test_analytics_reject_inverted_date_range(client):
    today = datetime.utcnow().date()
    params = {"start_date": today.isoformat(), "end_date": (today - timedelta(days=1)).isoformat()}
    assert client.get("/api/analytics/health-report", params=params).status_code == 400
    assert client.get("/api/analytics/productivity-score", params=params).status_code == 400
