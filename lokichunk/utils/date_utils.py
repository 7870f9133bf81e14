"""Utilities for converting chunk timestamps into datetimes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S.%f %Z"

# Millisecond timestamps a datetime can hold. A day is kept free at both ends
# so converting to any time zone stays in range.
_ONE_MS = timedelta(milliseconds=1)
MIN_MILLIS = (datetime.min.replace(tzinfo=timezone.utc) + timedelta(days=1) - EPOCH) // _ONE_MS
MAX_MILLIS = (datetime.max.replace(tzinfo=timezone.utc) - timedelta(days=1) - EPOCH) // _ONE_MS


def from_unix_millis(millis: int, tz: tzinfo | None = None) -> datetime:
    """Convert a millisecond epoch timestamp to an aware datetime."""
    result = EPOCH + timedelta(milliseconds=millis)
    return result.astimezone(tz) if tz is not None else result


def from_unix_nanos(nanos: int, tz: tzinfo | None = None) -> datetime:
    """Convert a nanosecond epoch timestamp to an aware datetime.

    Datetimes only carry microseconds; the sub-microsecond part is dropped.
    """
    result = EPOCH + timedelta(microseconds=nanos // 1000)
    return result.astimezone(tz) if tz is not None else result


def format_timestamp(value: datetime) -> str:
    """Format a datetime for reports, e.g. ``2024-01-02 03:04:05.000000 UTC``."""
    return value.strftime(DISPLAY_FORMAT)


def format_duration(delta: timedelta) -> str:
    """Format a timedelta the way Go prints a ``time.Duration``.

    Examples: ``0s``, ``1.5s``, ``2m0s``, ``3h4m5.006s``, ``-1h0m0s``.
    Durations below one second use ``ms``/``µs`` units.
    """
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim_fraction(micros / 1_000)}ms"

    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    seconds = _trim_fraction(rest / 1_000_000)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _trim_fraction(value: float) -> str:
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"
