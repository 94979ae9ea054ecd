"""Wall-clock helpers and millisecond/minute conversions."""

from __future__ import annotations

import math
import time

from .constants import MS_PER_MINUTE, MS_PER_SECOND


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * MS_PER_SECOND)


def minutes_to_ms(minutes: int) -> int:
    return int(minutes) * MS_PER_MINUTE


def elapsed_minutes(start_ms: int, end_ms: int) -> int:
    """Whole minutes between two instants, floored, never negative."""
    return max(0, (int(end_ms) - int(start_ms)) // MS_PER_MINUTE)


def remaining_ms(end_ms: int, now: int) -> int:
    return max(0, int(end_ms) - int(now))


def display_seconds(ms: int) -> int:
    """Seconds shown to the user; partial seconds round up."""
    return int(math.ceil(max(0, ms) / MS_PER_SECOND))


def format_duration(ms: int) -> str:
    """Format a duration in milliseconds as `MM:SS`."""
    minutes, seconds = divmod(display_seconds(ms), 60)
    return f"{minutes:02d}:{seconds:02d}"
