"""Epoch-millisecond time helpers shared by the core services."""

from __future__ import annotations

from collections.abc import Callable
import time

MS_PER_DAY = 1000 * 60 * 60 * 24

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
