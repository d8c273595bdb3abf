"""Datetime helpers: lax input parsing and schedule offset anchoring."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pendulum


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a lax datetime string into a timezone-aware datetime.

    Accepts the formats pendulum understands in non-strict mode, e.g.
    ``2026-02-02 22:21:29+00``, ``2026-02-02 22:21`` and ``2026-02-02``.
    Missing timezone defaults to default_tz; missing time components to zero.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def start_of_today(tz: str = "UTC") -> datetime:
    """Return the current day's midnight in the given time zone."""
    return pendulum.now(tz).start_of("day")


def offset_to_datetime(reference: datetime, offset: int, unit_hours: int = 24) -> datetime:
    """Anchor a schedule offset (in duration units) to an absolute instant."""
    return reference + timedelta(hours=offset * unit_hours)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
