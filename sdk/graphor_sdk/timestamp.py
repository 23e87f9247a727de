"""Millisecond timestamps as stored in created_at/updated_at/deleted_at."""

from __future__ import annotations

import time
from datetime import datetime


def now() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return time.time_ns() // 1_000_000


def to_timestamp(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)
