"""Wall-clock helpers expressed in epoch milliseconds."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Return the current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds into an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


__all__ = ["from_epoch_ms", "now_ms"]
