import pytest

from study_engine import EngineConfig, OutOfOrderSampleError, Scheduler, SmoothingBuffer
from study_engine.smoothing import SmoothedSnapshot


def test_empty_buffer_snapshot_is_neutral(scheduler):
    buffer = SmoothingBuffer(scheduler)
    assert buffer.snapshot() == SmoothedSnapshot()
    assert buffer.chart_series() == []


def test_hundred_samples_within_one_interval_yield_one_update(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    start = clock.now()
    seen = []
    buffer.snapshot_listeners.append(seen.append)

    for i in range(100):
        clock.set(start + i * 0.029)
        buffer.push(make_sample(clock.now(), posture_score=70, blink_rate=18))
        scheduler.run_pending()

    assert buffer.snapshot_updates == 0
    assert buffer.snapshot() == SmoothedSnapshot()

    clock.set(start + 3.0)
    scheduler.run_pending()

    assert buffer.snapshot_updates == 1
    assert len(seen) == 1
    assert seen[0].updated_at == start + 3.0
    assert seen[0].posture_score == 70
    assert seen[0].blink_rate == 18


def test_snapshot_stable_between_refreshes(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    start = clock.now()
    buffer.push(make_sample(start, posture_score=90))
    clock.set(start + 3.0)
    scheduler.run_pending()
    first = buffer.snapshot()

    buffer.push(make_sample(clock.now(), posture_score=20))
    clock.set(start + 5.9)
    scheduler.run_pending()
    assert buffer.snapshot() == first

    clock.set(start + 6.0)
    scheduler.run_pending()
    assert buffer.snapshot().posture_score == 20


def test_long_gap_fires_once_per_tick(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    buffer.push(make_sample(clock.now()))
    clock.advance(30.0)
    scheduler.run_pending()
    assert buffer.snapshot_updates == 1
    assert len(buffer.chart_series()) == 1


def test_display_window_is_bounded_but_history_is_not(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    for i in range(150):
        buffer.push(make_sample(clock.now() + i))
    assert len(buffer.history) == 150
    assert len(buffer.recent) == 60
    assert buffer.recent[0].timestamp == clock.now() + 90


def test_chart_points_every_five_seconds_and_bounded(clock, make_sample):
    scheduler = Scheduler(clock)
    buffer = SmoothingBuffer(scheduler, EngineConfig(CHART_MAX_POINTS=3))
    buffer.push(make_sample(clock.now(), looking_at_screen=True, posture_score=100, blink_rate=20))

    for _ in range(5):
        clock.advance(5.0)
        scheduler.run_pending()

    points = buffer.chart_series()
    assert len(points) == 3
    assert points[-1].engagement == 100
    assert points[-1].attention == 100
    assert points[-1].time == clock.now()


def test_out_of_order_sample_is_dropped(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    assert buffer.push(make_sample(10.0))
    assert buffer.push(make_sample(10.0))
    assert not buffer.push(make_sample(5.0))
    assert len(buffer.history) == 2
    assert buffer.dropped_samples == 1


def test_out_of_order_sample_raises_in_strict_mode(clock, make_sample):
    buffer = SmoothingBuffer(Scheduler(clock), EngineConfig(strict=True))
    buffer.push(make_sample(10.0))
    with pytest.raises(OutOfOrderSampleError):
        buffer.push(make_sample(5.0))


def test_cancelled_scheduler_stops_refreshes(clock, scheduler, make_sample):
    buffer = SmoothingBuffer(scheduler)
    buffer.push(make_sample(clock.now()))
    scheduler.cancel_all()
    clock.advance(60.0)
    assert scheduler.run_pending() == 0
    assert buffer.snapshot_updates == 0
