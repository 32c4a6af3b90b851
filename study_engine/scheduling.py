"""
StudySense Scheduling
Injectable clocks and a cooperative periodic-timer scheduler.

Timers never run on their own thread: the host calls ``Scheduler.run_pending()``
(typically from a 1-second tick) and every timer whose deadline has passed
fires exactly once, however many of its periods have elapsed.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("studysense.engine.scheduling")


class SystemClock:
    """Wall-clock time in epoch seconds"""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """Clock that only moves when told to; used for deterministic timer behaviour."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now

    def set(self, timestamp: float) -> None:
        self._now = float(timestamp)


@dataclass
class PeriodicTimer:
    name: str
    interval: float
    callback: Callable[[float], None]
    next_due: float
    active: bool = True
    fire_count: int = 0

    def cancel(self) -> None:
        self.active = False


class Scheduler:
    """Fixed-period timers driven by an injectable clock."""

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self._timers: List[PeriodicTimer] = []

    def every(
        self,
        interval: float,
        callback: Callable[[float], None],
        name: Optional[str] = None,
    ) -> PeriodicTimer:
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        timer = PeriodicTimer(
            name=name or getattr(callback, "__name__", "timer"),
            interval=interval,
            callback=callback,
            next_due=self.clock.now() + interval,
        )
        self._timers.append(timer)
        logger.debug("Timer '%s' scheduled every %.1fs", timer.name, interval)
        return timer

    def run_pending(self) -> int:
        """Fire every due timer once; returns the number of callbacks run."""
        now = self.clock.now()
        fired = 0
        for timer in list(self._timers):
            if not timer.active or now < timer.next_due:
                continue
            # Skip boundaries missed while nobody was ticking
            missed = int((now - timer.next_due) // timer.interval)
            timer.next_due += (missed + 1) * timer.interval
            timer.fire_count += 1
            timer.callback(now)
            fired += 1
        self._timers = [t for t in self._timers if t.active]
        return fired

    def cancel_all(self) -> None:
        for timer in self._timers:
            timer.cancel()
        if self._timers:
            logger.debug("Cancelled %d timer(s)", len(self._timers))
        self._timers = []

    @property
    def active_timers(self) -> List[PeriodicTimer]:
        return [t for t in self._timers if t.active]
