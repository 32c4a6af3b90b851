import pytest

from study_engine import EngineConfig, OutOfOrderSampleError, StudySession
from study_engine.alerts import BREAK_REMINDER, FATIGUE, POSTURE

GOOD = {"lookingAtScreen": True, "postureScore": 80, "blinkRate": 18, "faceDetected": True, "faceCount": 1}


@pytest.fixture
def session(clock):
    s = StudySession(session_id="s-1", clock=clock)
    yield s
    s.close()


def test_ingest_normalizes_and_stores(session, clock):
    sample = session.ingest({"data": GOOD})
    assert sample is not None
    assert sample.timestamp == clock.now()
    assert sample.posture_score == 80.0
    assert len(session.buffer.history) == 1


def test_snapshot_only_changes_on_value_timer(session, clock):
    session.ingest(GOOD)
    assert session.buffer.snapshot().engagement_score == 0

    clock.advance(1.0)
    session.tick()
    clock.advance(1.0)
    session.tick()
    assert session.buffer.snapshot().engagement_score == 0

    clock.advance(1.0)
    session.tick()
    snap = session.buffer.snapshot()
    # 100 * 0.5 + 80 * 0.3 + 100 * 0.2
    assert snap.engagement_score == 94
    assert snap.posture_score == 80
    assert snap.blink_rate == 18


def test_one_snapshot_per_interval_regardless_of_sample_rate(session, clock):
    for _ in range(9):
        for _ in range(10):
            session.ingest(GOOD)
        clock.advance(1.0)
        session.tick()
    assert len(session.buffer.history) == 90
    assert session.buffer.snapshot_updates == 3
    assert len(session.buffer.chart_series()) == 1


def test_health_inputs_default_without_samples(session):
    inputs = session.health_inputs()
    assert inputs.avg_blink_rate == 15
    assert inputs.avg_posture_score == 100
    assert inputs.yawn_count == 0


def test_health_inputs_use_latest_counters(session):
    session.ingest(dict(GOOD, yawnCount=1))
    session.ingest(dict(GOOD, yawnCount=3, headDrops=1))
    inputs = session.health_inputs()
    assert inputs.yawn_count == 3
    assert inputs.head_drops == 1
    assert inputs.avg_blink_rate == 18


def test_alert_listener_receives_new_alerts_once(session):
    received = []
    session.alert_listeners.append(received.append)

    session.ingest(dict(GOOD, microSleeps=1))
    session.ingest(dict(GOOD, microSleeps=1))

    assert [a.id for a in received] == [FATIGUE]
    assert session.health.fatigue_level.value == "high"


def test_poor_posture_raises_and_dismissal_latches(session):
    for _ in range(5):
        session.ingest(dict(GOOD, postureScore=30))
    assert POSTURE in [a.id for a in session.active_alerts]

    assert session.dismiss_alert(POSTURE) is True
    session.ingest(dict(GOOD, postureScore=30))
    assert POSTURE not in [a.id for a in session.active_alerts]
    assert session.dismiss_alert(POSTURE) is False


def test_break_reminder_after_twenty_minutes(session, clock):
    received = []
    session.alert_listeners.append(received.append)
    clock.advance(20 * 60)
    session.tick()
    assert [a.id for a in received] == [BREAK_REMINDER]

    clock.advance(1.0)
    session.tick()
    assert len(received) == 1


def test_out_of_order_sample_dropped(session):
    assert session.ingest(dict(GOOD, timestamp=2_000_000_000)) is not None
    assert session.ingest(dict(GOOD, timestamp=1_999_999_000)) is None
    assert session.buffer.dropped_samples == 1


def test_out_of_order_sample_raises_in_strict_mode(clock):
    session = StudySession(config=EngineConfig(strict=True), clock=clock)
    session.ingest(dict(GOOD, timestamp=2_000_000_000))
    with pytest.raises(OutOfOrderSampleError):
        session.ingest(dict(GOOD, timestamp=1_999_999_000))
    session.close()


def test_close_stops_timers_and_freezes_analytics(session, clock):
    session.ingest(GOOD)
    clock.advance(30.0)
    final = session.close()

    assert final.duration_seconds == 30
    assert session.scheduler.active_timers == []
    assert session.ingest(GOOD) is None

    clock.advance(600.0)
    assert session.tick() == 0
    assert session.analytics() == final
    assert session.close() is final


def test_sessions_are_independent(clock):
    a = StudySession(clock=clock)
    b = StudySession(clock=clock)
    a.ingest(dict(GOOD, hasPhone=True))

    assert a.session_id != b.session_id
    assert len(b.buffer.history) == 0
    assert a.analytics().distraction_count == 1
    assert b.analytics().distraction_count == 0

    a.close()
    clock.advance(3.0)
    assert b.tick() > 0
    b.close()


def test_live_state_shape(session, clock):
    session.ingest(GOOD)
    clock.advance(65.0)
    session.tick()
    state = session.live_state()

    assert state["session_id"] == "s-1"
    assert state["closed"] is False
    assert state["duration_seconds"] == 65
    assert state["duration_label"] == "01:05"
    assert state["snapshot"]["engagement_score"] == 94
    assert state["health"]["label"] == "Excellent"
    assert state["analytics"]["attention_rate"] == 100


def test_batch_ingest_drops_out_of_order_samples(session):
    accepted = session.ingest_batch([
        dict(GOOD, timestamp=2_000_000_000),
        dict(GOOD, timestamp=1_999_999_000),
        dict(GOOD, timestamp=2_000_000_001),
    ])
    assert [s.timestamp for s in accepted] == [2_000_000_000, 2_000_000_001]
    assert session.buffer.dropped_samples == 1


def test_strict_batch_is_rejected_as_a_whole(clock):
    session = StudySession(config=EngineConfig(strict=True), clock=clock)
    session.ingest(dict(GOOD, timestamp=2_000_000_000))
    with pytest.raises(OutOfOrderSampleError):
        session.ingest_batch([
            dict(GOOD, timestamp=2_000_000_010),
            dict(GOOD, timestamp=2_000_000_020),
            dict(GOOD, timestamp=2_000_000_015),
        ])
    assert len(session.buffer.history) == 1
    session.close()


def test_batch_ingest_after_close_is_ignored(session):
    session.close()
    assert session.ingest_batch([GOOD, GOOD]) == []
