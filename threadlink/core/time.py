"""Clock helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def now_ts() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())


__all__ = ["now_ts", "utcnow"]
