"""
Date literal interpretation for the modified and created fields.

Every accepted literal becomes a half-open range of Unix epoch seconds:
a calendar date covers its whole UTC day, while date-times, instants and
relative offsets cover a single second.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from .ast import INTEGER_MAX, NumberValue, StringValue, Unit, Value, fits_integer


SECONDS_PER_DAY = 86400

Clock = Callable[[], datetime]

_DATE_ONLY_RE = re.compile(r'\d{4}-\d{2}-\d{2}')
_RELATIVE_RE = re.compile(r'([+-]?)(\d+)([smhdw])')
_RELATIVE_SCALES = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400, 'w': 604800}


class DateParseError(ValueError):
    """Raised when a literal is not a recognised date or time."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _day_range(day: date) -> Tuple[int, int]:
    start = int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())
    return start, start + SECONDS_PER_DAY


def _instant(moment: datetime) -> Tuple[int, int]:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    start = int(moment.timestamp())
    return start, start + 1


def _offset_from_now(clock: Clock, seconds: float) -> Tuple[int, int]:
    try:
        return _instant(clock() + timedelta(seconds=seconds))
    except (OverflowError, ValueError) as e:
        raise DateParseError("Relative offset is out of range") from e


def _epoch_seconds(number: float) -> Tuple[int, int]:
    if not fits_integer(number) or int(number) >= INTEGER_MAX:
        raise DateParseError(f"Epoch time {number:g} is out of range")
    start = int(number)
    return start, start + 1


def resolve_time_range(value: Value, clock: Optional[Clock] = None) -> Tuple[int, int]:
    """
    Interpret a literal as a time range.

    Accepted forms:
        - ISO-8601 date (`2024-01-01`) or date-time (`2024-01-01T10:30:00Z`)
        - `today`, `yesterday`, `now`
        - relative offsets (`-7d`, `-12h`), either as a duration number or
          as text
        - a unit-less number, read as Unix epoch seconds

    Args:
        value: StringValue or NumberValue from the parser
        clock: Callable returning the current aware datetime

    Returns:
        (start, end) epoch seconds, end exclusive

    Raises:
        DateParseError: If the literal is not a recognised date form
    """
    clock = clock or utc_now

    if isinstance(value, NumberValue):
        if value.unit == Unit.SECONDS:
            return _offset_from_now(clock, value.number)
        if value.unit is None:
            return _epoch_seconds(value.number)
        raise DateParseError("Byte sizes cannot be used as dates")

    if not isinstance(value, StringValue):
        raise DateParseError(f"Unsupported date value: {type(value).__name__}")

    text = value.text.strip()
    lowered = text.lower()

    if lowered == 'now':
        return _instant(clock())
    if lowered == 'today':
        return _day_range(clock().astimezone(timezone.utc).date())
    if lowered == 'yesterday':
        return _day_range(clock().astimezone(timezone.utc).date() - timedelta(days=1))

    relative = _RELATIVE_RE.fullmatch(text)
    if relative:
        sign, amount, unit = relative.groups()
        seconds = int(amount) * _RELATIVE_SCALES[unit]
        if sign == '-':
            seconds = -seconds
        return _instant(clock() + timedelta(seconds=seconds))

    if _DATE_ONLY_RE.fullmatch(text):
        try:
            return _day_range(date.fromisoformat(text))
        except ValueError as e:
            raise DateParseError(f"Invalid date '{text}': {e}") from e

    # fromisoformat() only learned the trailing Z in Python 3.11
    iso_text = text[:-1] + '+00:00' if text.endswith(('Z', 'z')) else text
    try:
        return _instant(datetime.fromisoformat(iso_text))
    except ValueError as e:
        raise DateParseError(f"Invalid date or time '{text}'") from e
