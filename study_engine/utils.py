"""
Numeric helpers shared by the scoring, aggregation and rollup modules.
"""

import math
from typing import Iterable, Optional


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (display rounding, not banker's)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def safe_mean(values: Iterable[float], default: float = 0.0) -> float:
    """Arithmetic mean, or ``default`` for an empty input."""
    total = 0.0
    count = 0
    for v in values:
        total += v
        count += 1
    return total / count if count else default


def format_duration(total_seconds: Optional[float]) -> str:
    """Format seconds as ``MM:SS`` or ``HH:MM:SS`` once an hour has passed."""
    if total_seconds is None or total_seconds < 0:
        return "00:00"

    total_seconds = int(total_seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
