"""Time helpers expressed in exchange milliseconds."""

from __future__ import annotations

import time


def current_timestamp_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


__all__ = ["current_timestamp_ms"]
