"""
Fixed UTC offsets and the library clock.

Every job carries a fixed offset (never a DST-aware region), modelled as a
``datetime.timezone`` built from a signed number of minutes. All reads of
the current time go through ``utcnow()`` so there is exactly one clock.
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo

_OFFSET_RE = re.compile(r'^(?P<sign>[+-])(?P<hours>\d{2})(?::?(?P<minutes>\d{2}))?$')

# Offsets must stay strictly inside a day
MAX_OFFSET_MINUTES = 24 * 60 - 1


def fixed_offset(minutes: int) -> timezone:
    """
    Build a fixed UTC offset.

    Args:
        minutes: Signed minutes east of UTC (e.g. 480 for +08:00)

    Returns:
        datetime.timezone with that offset

    Raises:
        ValueError: If the offset is a day or more away from UTC
    """
    if abs(minutes) > MAX_OFFSET_MINUTES:
        raise ValueError(f"UTC offset out of range: {minutes} minutes")
    if minutes == 0:
        return timezone.utc
    return timezone(timedelta(minutes=minutes))


UTC = fixed_offset(0)


def parse_offset(text: str) -> timezone:
    """
    Parse an offset such as ``+08:00``, ``-0530``, ``+02``, ``Z`` or ``UTC``.

    Raises:
        ValueError: If the text is not a recognised offset
    """
    value = text.strip()
    if value.upper() in ('Z', 'UTC'):
        return UTC

    match = _OFFSET_RE.match(value)
    if not match:
        raise ValueError(f"Invalid UTC offset: {text!r}")

    hours = int(match.group('hours'))
    minutes = int(match.group('minutes') or 0)
    if minutes >= 60:
        raise ValueError(f"Invalid UTC offset: {text!r}")

    total = hours * 60 + minutes
    if match.group('sign') == '-':
        total = -total
    return fixed_offset(total)


def offset_minutes(tz: tzinfo) -> int:
    """Signed minutes east of UTC for a fixed offset."""
    delta = tz.utcoffset(None)
    if delta is None:
        raise ValueError(f"Not a fixed offset: {tz!r}")
    return int(delta.total_seconds() // 60)


def format_offset(tz: tzinfo) -> str:
    """Render a fixed offset as ``+HH:MM``."""
    minutes = offset_minutes(tz)
    sign = '-' if minutes < 0 else '+'
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
