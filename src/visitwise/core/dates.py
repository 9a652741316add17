"""Appointment date normalization.

Historical summary records carry the appointment date in several encodings:
date-only strings, date-time strings, structured timestamps (``{"seconds":
...}`` mappings or timestamp objects) and native ``date``/``datetime``
values.  Every comparison goes through :func:`normalize_appointment`, which
reduces all of them to the same midnight-UTC instant.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional


_SECONDS_KEYS = ("seconds", "_seconds")
_NANOS_KEYS = ("nanoseconds", "_nanoseconds", "nanos")


def normalize_appointment(value: Any) -> datetime:
    """Return the canonical midnight-UTC instant for an appointment identifier.

    Args:
        value: A date-only string, a date-time string, a structured
            timestamp, a ``datetime`` or a ``date``.

    Returns:
        Timezone-aware ``datetime`` at 00:00:00 UTC on the appointment day.

    Raises:
        ValueError: If the value is empty or cannot be read as a date.
    """
    day = _to_date(value)
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def try_normalize_appointment(value: Any) -> Optional[datetime]:
    """Like :func:`normalize_appointment` but returns None for unparseable values."""
    try:
        return normalize_appointment(value)
    except (ValueError, TypeError, OverflowError):
        return None


def to_iso_utc(instant: datetime) -> str:
    """Canonical storage form: ``2026-02-14T00:00:00Z``."""
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _to_date(value: Any) -> date:
    if value is None:
        raise ValueError("Appointment date is missing")

    if isinstance(value, datetime):
        return _as_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _parse_string(value)
    if isinstance(value, Mapping):
        return _from_epoch(_mapping_seconds(value), _mapping_nanos(value))

    # Timestamp objects from document-database SDKs
    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        return _as_utc(to_datetime()).date()
    seconds = getattr(value, "seconds", None)
    if isinstance(seconds, (int, float)):
        return _from_epoch(seconds, getattr(value, "nanos", 0) or 0)

    raise ValueError(f"Unsupported appointment date encoding: {type(value).__name__}")


def _parse_string(raw: str) -> date:
    text = raw.strip()
    if not text:
        raise ValueError("Appointment date is empty")

    if len(text) == 10:
        return date.fromisoformat(text)

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text)).date()


def _as_utc(value: datetime) -> datetime:
    # Naive values are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _mapping_seconds(value: Mapping[str, Any]) -> float:
    for key in _SECONDS_KEYS:
        if key in value:
            return float(value[key])
    raise ValueError("Structured timestamp has no seconds field")


def _mapping_nanos(value: Mapping[str, Any]) -> float:
    for key in _NANOS_KEYS:
        if key in value:
            return float(value[key] or 0)
    return 0.0


def _from_epoch(seconds: float, nanos: float = 0) -> date:
    return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc).date()


def parse_instant(value: Any) -> Optional[datetime]:
    """Read a stored timestamp (creation/update time) as an aware UTC datetime.

    Unlike :func:`normalize_appointment` this keeps the time of day.  Returns
    None for anything unreadable.
    """
    try:
        if isinstance(value, datetime):
            return _as_utc(value)
        if isinstance(value, str) and value.strip():
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            return _as_utc(datetime.fromisoformat(text))
        if isinstance(value, Mapping):
            seconds = _mapping_seconds(value) + _mapping_nanos(value) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        to_datetime = getattr(value, "to_datetime", None)
        if callable(to_datetime):
            return _as_utc(to_datetime())
    except (ValueError, TypeError, OverflowError):
        return None
    return None
