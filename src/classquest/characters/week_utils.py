"""ISO week helpers for the weekly stipend."""

from __future__ import annotations

from datetime import date, datetime, timezone

from classquest.clock import to_datetime


def get_week_iso(dt: datetime) -> str:
    """Get ISO week string e.g. '2026-W09'. Uses %G-W%V (ISO year + ISO week)."""
    return dt.strftime("%G-W%V")


def get_current_week_iso(now: datetime | None = None) -> str:
    """Get the ISO week string for the current week."""
    if now is None:
        now = datetime.now(timezone.utc)
    return get_week_iso(now)


def week_iso_at(ms: int) -> str:
    """ISO week string for an epoch-millisecond timestamp."""
    return get_week_iso(to_datetime(ms))


def iso_week_monday(week_iso: str) -> date:
    """Monday of an ISO week string. Raises ValueError on a malformed string."""
    return datetime.strptime(week_iso + "-1", "%G-W%V-%u").date()


def is_valid_week_iso(week_iso: str) -> bool:
    try:
        monday = iso_week_monday(week_iso)
    except ValueError:
        return False
    # strptime rolls W53 over into the next year for 52-week years
    return get_week_iso(datetime.combine(monday, datetime.min.time())) == week_iso

