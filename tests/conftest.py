import pytest

from study_engine import EngineConfig, ManualClock, MetricSample, Scheduler


@pytest.fixture
def clock():
    return ManualClock(start=1_700_000_000.0)


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def make_sample():
    def _make(timestamp=0.0, **overrides):
        fields = dict(
            looking_at_screen=True,
            posture_score=80.0,
            blink_rate=18.0,
            has_phone=False,
            face_detected=True,
            face_count=1,
        )
        fields.update(overrides)
        return MetricSample(timestamp=timestamp, **fields)

    return _make
