"""
StudySense Sample Ingest
Validates and normalizes raw sensing records into canonical MetricSample objects.

The sensing collaborator sends records either flat or wrapped in a
``{"timestamp": ..., "data": {...}}`` envelope, with camelCase or snake_case
keys.  Ingest is liberal: a malformed field never raises, it falls back to
its zero/false default.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("studysense.engine.ingest")

# Epoch values above this are treated as milliseconds
_MILLIS_THRESHOLD = 1e11


@dataclass(frozen=True)
class MetricSample:
    """One timestamped measurement of a student's observed state"""
    timestamp: float                  # epoch seconds
    looking_at_screen: bool = False
    posture_score: float = 0.0        # 0-100
    blink_rate: float = 0.0           # blinks per minute
    has_phone: bool = False
    face_detected: bool = False
    face_count: int = 0
    neck_angle: float = 0.0           # degrees
    back_angle: float = 0.0           # degrees
    yawn_count: int = 0               # cumulative for the session
    head_drops: int = 0
    micro_sleeps: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# canonical field → accepted source keys
_FIELD_KEYS = {
    "looking_at_screen": ("lookingAtScreen", "looking_at_screen"),
    "posture_score": ("postureScore", "posture_score"),
    "blink_rate": ("blinkRate", "blink_rate"),
    "has_phone": ("hasPhone", "has_phone"),
    "face_detected": ("faceDetected", "face_detected"),
    "face_count": ("faceCount", "face_count"),
    "neck_angle": ("neckAngle", "neck_angle"),
    "back_angle": ("backAngle", "back_angle"),
    "yawn_count": ("yawnCount", "yawn_count"),
    "head_drops": ("headDrops", "head_drops"),
    "micro_sleeps": ("microSleeps", "micro_sleeps"),
}


def _lookup(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def _to_count(value: Any) -> int:
    return max(int(_to_float(value)), 0)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def parse_timestamp(value: Any) -> Optional[float]:
    """
    Convert a timestamp in any accepted shape to epoch seconds.
    Returns None when the value can't be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()

    if isinstance(value, (int, float)):
        ts = float(value)
        if math.isnan(ts) or math.isinf(ts) or ts < 0:
            return None
        return ts / 1000.0 if ts > _MILLIS_THRESHOLD else ts

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        try:
            return parse_timestamp(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None

    return None


def normalize_sample(raw: Optional[Mapping[str, Any]], now: float) -> MetricSample:
    """
    Build a complete MetricSample from a raw record.

    ``now`` stands in for a missing or unparseable timestamp.  Numeric
    fields are clamped to their valid ranges; NaN and garbage become 0.
    """
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("Discarding non-mapping sample payload of type %s", type(raw).__name__)
        raw = {}
    data = raw.get("data") if isinstance(raw.get("data"), Mapping) else raw

    timestamp = parse_timestamp(raw.get("timestamp", data.get("timestamp")))
    if timestamp is None:
        logger.debug("Sample without usable timestamp, using clock time %.3f", now)
        timestamp = now

    values = {field: _lookup(data, keys) for field, keys in _FIELD_KEYS.items()}

    return MetricSample(
        timestamp=timestamp,
        looking_at_screen=_to_bool(values["looking_at_screen"]),
        posture_score=min(max(_to_float(values["posture_score"]), 0.0), 100.0),
        blink_rate=max(_to_float(values["blink_rate"]), 0.0),
        has_phone=_to_bool(values["has_phone"]),
        face_detected=_to_bool(values["face_detected"]),
        face_count=_to_count(values["face_count"]),
        neck_angle=_to_float(values["neck_angle"]),
        back_angle=_to_float(values["back_angle"]),
        yawn_count=_to_count(values["yawn_count"]),
        head_drops=_to_count(values["head_drops"]),
        micro_sleeps=_to_count(values["micro_sleeps"]),
    )
