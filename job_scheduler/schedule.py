"""
Recurrence schedules.

The scheduler only needs something that can enumerate future occurrences:
``after(when)`` and ``upcoming(tz)``, both yielding ascending aware
datetimes. CronSchedule provides that for cron expressions by delegating
field evaluation to APScheduler's CronTrigger.

Expression format (seconds first, year optional)::

    sec   min   hour   day-of-month   month   day-of-week   [year]

A plain 5-field crontab (``min hour dom month dow``) is accepted too and
fires at second 0.

Day-of-week numbers run 1 = Sunday to 7 = Saturday in the 6 and 7 field
forms, and follow Unix crontab (0 or 7 = Sunday) in the 5-field form.
They are rewritten to APScheduler's numbering (0 = Monday) before the
trigger is built. Names such as ``Mon-Fri`` or ``Sun,Sat`` pass through.
"""

import logging
import re
from datetime import datetime, timedelta, tzinfo
from typing import Dict, Iterator

from apscheduler.triggers.cron import CronTrigger

from job_scheduler import timezones

logger = logging.getLogger(__name__)

FIELD_NAMES = ('second', 'minute', 'hour', 'day', 'month', 'day_of_week', 'year')

_FULL_NAMES = {
    'monday': 'mon', 'tuesday': 'tue', 'wednesday': 'wed', 'thursday': 'thu',
    'friday': 'fri', 'saturday': 'sat', 'sunday': 'sun',
    'january': 'jan', 'february': 'feb', 'march': 'mar', 'april': 'apr',
    'june': 'jun', 'july': 'jul', 'august': 'aug', 'september': 'sep',
    'october': 'oct', 'november': 'nov', 'december': 'dec',
}
_FULL_NAME_RE = re.compile(r'\b(' + '|'.join(_FULL_NAMES) + r')\b')

_WEEKDAYS = ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat')
# APScheduler counts from Monday
_TRIGGER_WEEKDAY = {name: index for index, name in enumerate(_WEEKDAYS[1:] + _WEEKDAYS[:1])}
_DOW_PART_RE = re.compile(r'^(?P<start>\*|\d+)(?:-(?P<end>\d+))?(?:/(?P<step>\d+))?$')

_ONE_MICROSECOND = timedelta(microseconds=1)


class ScheduleParseError(ValueError):
    """Raised when a cron expression cannot be parsed."""
    pass


def _normalize_field(value: str) -> str:
    value = value.lower()
    if value == '?':
        return '*'
    return _FULL_NAME_RE.sub(lambda m: _FULL_NAMES[m.group(1)], value)


def _convert_day_of_week(value: str, crontab: bool) -> str:
    """
    Rewrite numeric day-of-week entries as APScheduler weekday numbers.

    Numbers, ranges and steps are expanded into an explicit list, since a
    range such as Sun-Tue is not contiguous once Monday counts as 0.
    Names and a bare ``*`` are left alone.

    Args:
        value: Normalised day-of-week field
        crontab: True for the 5-field form (0 or 7 = Sunday), False for
                 the 6/7 field form (1 = Sunday ... 7 = Saturday)
    """
    low = 0 if crontab else 1
    converted = []
    for part in value.split(','):
        match = _DOW_PART_RE.match(part)
        if part == '*' or not match:
            converted.append(part)
            continue

        step = int(match.group('step') or 1)
        if match.group('start') == '*':
            start, end = low, low + 6
        else:
            start = int(match.group('start'))
            if match.group('end'):
                end = int(match.group('end'))
            elif match.group('step'):
                end = 7
            else:
                end = start

        if step == 0 or start > end or not (low <= start <= 7 and low <= end <= 7):
            raise ScheduleParseError(f"Invalid day-of-week value {part!r}")

        for number in range(start, end + 1, step):
            name = _WEEKDAYS[number % 7] if crontab else _WEEKDAYS[number - 1]
            converted.append(str(_TRIGGER_WEEKDAY[name]))

    return ','.join(dict.fromkeys(converted))


def parse_expression(expression: str) -> Dict[str, str]:
    """
    Split a cron expression into CronTrigger keyword arguments.

    Args:
        expression: 5, 6 or 7 whitespace separated fields

    Returns:
        Dict mapping CronTrigger field names to field expressions

    Raises:
        ScheduleParseError: If the field count is wrong
    """
    parts = expression.split()
    crontab = len(parts) == 5
    if crontab:
        parts = ['0'] + parts
    if len(parts) not in (6, 7):
        raise ScheduleParseError(
            f"Invalid cron expression {expression!r}: expected 5, 6 or 7 fields, got {len(parts)}"
        )

    fields = {
        name: _normalize_field(part)
        for name, part in zip(FIELD_NAMES, parts)
    }
    fields['day_of_week'] = _convert_day_of_week(fields['day_of_week'], crontab)
    return fields


class CronSchedule:
    """
    A cron expression that can list its occurrences.

    Triggers are built lazily per time zone, since a cron field such as
    ``hour=9`` means a different instant in each offset.
    """

    def __init__(self, expression: str):
        """
        Parse and validate a cron expression.

        Args:
            expression: Cron expression, e.g. ``"0/10 * * * * *"``

        Raises:
            ScheduleParseError: If the expression is malformed
        """
        self._expression = ' '.join(expression.split())
        self._fields = parse_expression(expression)
        self._triggers: Dict[tzinfo, CronTrigger] = {}

        # Building a trigger validates every field
        try:
            self._trigger(timezones.UTC)
        except ValueError as e:
            raise ScheduleParseError(f"Invalid cron expression {expression!r}: {e}") from e

    @classmethod
    def from_str(cls, expression: str) -> 'CronSchedule':
        return cls(expression)

    @property
    def expression(self) -> str:
        return self._expression

    def _trigger(self, tz: tzinfo) -> CronTrigger:
        trigger = self._triggers.get(tz)
        if trigger is None:
            trigger = CronTrigger(timezone=tz, **self._fields)
            self._triggers[tz] = trigger
        return trigger

    def after(self, when: datetime) -> Iterator[datetime]:
        """
        Yield occurrences strictly after ``when``, in ascending order.

        Occurrences are expressed in ``when``'s time zone (UTC if naive).
        The sequence ends only if the expression runs out of matches,
        e.g. when the year field lies in the past.
        """
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezones.UTC)
        trigger = self._trigger(when.tzinfo)

        current = when
        while True:
            occurrence = trigger.get_next_fire_time(None, current + _ONE_MICROSECOND)
            if occurrence is None:
                return
            yield occurrence
            current = occurrence

    def upcoming(self, tz: tzinfo) -> Iterator[datetime]:
        """Yield occurrences after the current time, in the given time zone."""
        return self.after(timezones.utcnow().astimezone(tz))

    def __eq__(self, other):
        if not isinstance(other, CronSchedule):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self):
        return hash(tuple(self._fields.items()))

    def __str__(self):
        return self._expression

    def __repr__(self):
        return f"CronSchedule({self._expression!r})"


# Alias kept short for call sites: Schedule("0 0 * * * *")
Schedule = CronSchedule
