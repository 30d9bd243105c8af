"""Timestamp resolution: nanosecond strings, millisecond epochs, ISO-8601."""

import logging
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Checked in order; the first present field wins
TIMESTAMP_FIELDS = ("timeUnixNano", "time_unix_nano", "time", "timestamp")

NANOS_PER_MILLI = 1_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Seconds fraction of any length; fromisoformat on 3.10 takes only 3 or 6 digits
_FRACTION_RE = re.compile(r"(?<=:\d\d)\.(\d+)")


def first_timestamp(raw: Mapping[str, Any]) -> Any:
    """Return the first present timestamp candidate, or None."""
    for name in TIMESTAMP_FIELDS:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _parse_iso(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        # Naive strings are local wall-clock time
        dt = dt.astimezone()
    return dt


def to_epoch_millis(value: Any) -> int | None:
    """Convert a timestamp encoding to integer milliseconds since the epoch.

    Digit-only strings are nanoseconds and are truncated with integer
    division, so values beyond 2**53 keep full precision. Numbers are
    milliseconds. Any other string is parsed as ISO-8601.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isascii() and stripped.isdigit():
            return int(stripped) // NANOS_PER_MILLI
        try:
            dt = _parse_iso(stripped)
        except ValueError:
            return None
        delta = dt - _EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    return None


def from_epoch_millis(millis: int, tz: tzinfo | None = None) -> datetime:
    """Build an aware datetime from integer milliseconds without float rounding."""
    dt = _EPOCH + timedelta(milliseconds=millis)
    return dt.astimezone(tz) if tz is not None else dt.astimezone()


def resolve_timestamp(raw: Mapping[str, Any], tz: tzinfo | None = None,
                      now: datetime | None = None) -> datetime:
    """Resolve an event's timestamp, falling back to the current time.

    Never raises: a missing or unusable timestamp only produces a debug
    diagnostic and the event is still accepted.
    """
    value = first_timestamp(raw)
    if value is None:
        logger.debug("No timestamp in event, using current time")
        return _now(tz, now)

    millis = to_epoch_millis(value)
    if millis is None:
        logger.debug("Unparseable timestamp %r, using current time", value)
        return _now(tz, now)

    try:
        return from_epoch_millis(millis, tz)
    except (OverflowError, OSError, ValueError) as e:
        logger.debug("Timestamp %r out of range (%s), using current time", value, e)
        return _now(tz, now)


def _now(tz: tzinfo | None, now: datetime | None) -> datetime:
    current = now or datetime.now(timezone.utc)
    return current.astimezone(tz) if tz is not None else current.astimezone()


def format_display_time(dt: datetime) -> str:
    """Render HH:MM:SS.mmm, 24-hour clock, zero-padded milliseconds."""
    return f"{dt.strftime('%H:%M:%S')}.{dt.microsecond // 1000:03d}"
