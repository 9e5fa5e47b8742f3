"""Time sources compared against auction deadlines."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Wall clock truncated to whole epoch seconds."""

    def now(self) -> int:
        return int(time.time())


def isoformat(epoch_seconds: int) -> str:
    """Render epoch seconds as an ISO-8601 UTC string with a ``Z`` suffix."""
    dt = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")
