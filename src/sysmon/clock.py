"""Monotonic clock used to schedule module refreshes."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Return the monotonic clock in whole milliseconds."""
    return time.monotonic_ns() // 1_000_000
