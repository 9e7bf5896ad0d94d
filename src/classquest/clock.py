"""Wall-clock helpers.

Services never read the clock themselves; they take ``now`` (epoch
milliseconds) as an argument. Routers and workers call :func:`now_ms` once
at call entry and pass it down.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

MS_PER_HOUR = 60 * 60 * 1000


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def deadline_after(now: int, duration_hours: float | None) -> int | None:
    """Epoch ms ``duration_hours`` after ``now``, or None when no duration is set."""
    if not duration_hours:
        return None
    return now + math.floor(duration_hours * MS_PER_HOUR)


def is_past(deadline: int | None, now: int) -> bool:
    """True once ``now`` is strictly after ``deadline``. A missing deadline never passes."""
    return deadline is not None and now > deadline


def to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
