import math
from datetime import datetime, timezone

from study_engine.samples import MetricSample, normalize_sample, parse_timestamp


def test_normalizes_camel_case_record():
    sample = normalize_sample(
        {
            "timestamp": 1_700_000_010,
            "lookingAtScreen": True,
            "postureScore": 72.5,
            "blinkRate": 16,
            "hasPhone": False,
            "faceDetected": True,
            "faceCount": 1,
            "neckAngle": 12.0,
            "backAngle": 4.5,
            "yawnCount": 2,
            "headDrops": 1,
            "microSleeps": 0,
        },
        now=0.0,
    )
    assert sample == MetricSample(
        timestamp=1_700_000_010.0,
        looking_at_screen=True,
        posture_score=72.5,
        blink_rate=16.0,
        has_phone=False,
        face_detected=True,
        face_count=1,
        neck_angle=12.0,
        back_angle=4.5,
        yawn_count=2,
        head_drops=1,
        micro_sleeps=0,
    )


def test_accepts_envelope_with_millisecond_timestamp():
    sample = normalize_sample(
        {"timestamp": 1_700_000_000_500, "data": {"looking_at_screen": True, "posture_score": 90}},
        now=0.0,
    )
    assert sample.timestamp == 1_700_000_000.5
    assert sample.looking_at_screen is True
    assert sample.posture_score == 90.0


def test_malformed_fields_fall_back_to_defaults():
    sample = normalize_sample(
        {
            "postureScore": float("nan"),
            "blinkRate": "fast",
            "yawnCount": -3,
            "hasPhone": None,
            "faceCount": float("inf"),
        },
        now=42.0,
    )
    assert sample.timestamp == 42.0
    assert sample.posture_score == 0.0
    assert sample.blink_rate == 0.0
    assert sample.yawn_count == 0
    assert sample.has_phone is False
    assert sample.face_count == 0
    assert not any(isinstance(v, float) and math.isnan(v) for v in sample.to_dict().values())


def test_clamps_posture_and_blink_rate():
    sample = normalize_sample({"postureScore": 150, "blinkRate": -5}, now=1.0)
    assert sample.posture_score == 100.0
    assert sample.blink_rate == 0.0


def test_non_mapping_payload_yields_default_sample():
    sample = normalize_sample(["not", "a", "record"], now=7.0)
    assert sample == MetricSample(timestamp=7.0)


def test_string_booleans():
    sample = normalize_sample({"lookingAtScreen": "true", "hasPhone": "no"}, now=1.0)
    assert sample.looking_at_screen is True
    assert sample.has_phone is False


def test_parse_timestamp_shapes():
    moment = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert parse_timestamp(moment) == moment.timestamp()
    assert parse_timestamp("2026-03-01T12:00:00Z") == moment.timestamp()
    assert parse_timestamp(datetime(2026, 3, 1, 12, 0)) == moment.timestamp()
    assert parse_timestamp("garbage") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp(-1) is None
