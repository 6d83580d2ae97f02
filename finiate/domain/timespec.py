"""Deadline and extension parsing for command input.

Accepted deadline forms:
- ISO-8601 datetime ("2026-10-20T18:00", "2026-10-20T18:00:00+02:00")
- ISO-8601 date ("2026-10-20"), meaning the end of that local day (23:59)
- "now", "today", "tomorrow" (the latter two mean 23:59 local)
- relative spans from now ("+2d", "3h30m", "1w"), units w d h m s

Naive datetimes are read as local time. Everything returned is aware UTC,
truncated to milliseconds.
"""

import re
from datetime import UTC, date, datetime, time, timedelta

from finiate.core.exceptions import ValidationError

_SPAN_RE = re.compile(
    r"^\+?\s*(?:(?P<w>\d+)\s*w)?\s*(?:(?P<d>\d+)\s*d)?\s*(?:(?P<h>\d+)\s*h)?"
    r"\s*(?:(?P<m>\d+)\s*m)?\s*(?:(?P<s>\d+)\s*s)?$",
    re.IGNORECASE,
)

_END_OF_DAY = time(23, 59)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC at millisecond precision; naive values are local time.

    Raises:
        ValidationError: the value cannot be represented in UTC
    """
    try:
        if value.tzinfo is None:
            value = value.astimezone()  # local time
        value = value.astimezone(UTC)
    except (OverflowError, ValueError) as exc:
        raise ValidationError(f"Time {value.isoformat()} is out of range") from exc
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def _end_of_local_day(day: date) -> datetime:
    return as_utc(datetime.combine(day, _END_OF_DAY))


def shift(value: datetime, span: timedelta) -> datetime:
    """Return value + span, rejecting results past the supported calendar."""
    try:
        return value + span
    except OverflowError as exc:
        raise ValidationError(f"Time span {span} moves {value.isoformat()} out of range") from exc


def parse_span(text: str) -> timedelta:
    """Parse a relative span such as "1d", "+2h30m" or "1w".

    Raises:
        ValidationError: text is empty, malformed, too large, or a zero span
    """
    match = _SPAN_RE.match(text.strip()) if text else None
    if not match or not any(match.groupdict().values()):
        raise ValidationError(f"Cannot parse time span: {text!r} (try 1d, 2h30m, 1w)")

    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    try:
        span = timedelta(
            weeks=parts.get("w", 0),
            days=parts.get("d", 0),
            hours=parts.get("h", 0),
            minutes=parts.get("m", 0),
            seconds=parts.get("s", 0),
        )
    except OverflowError as exc:
        raise ValidationError(f"Time span is too large: {text!r}") from exc
    if span <= timedelta(0):
        raise ValidationError(f"Time span must be positive: {text!r}")
    return span


def parse_deadline(text: str, now: datetime) -> datetime:
    """Parse a deadline relative to `now`.

    Past deadlines are accepted; an overdue agenda is a legitimate state.

    Raises:
        ValidationError: text matches none of the accepted forms, or lies out of range
    """
    if text is None or not text.strip():
        raise ValidationError("Deadline is empty")
    raw = text.strip()
    keyword = raw.lower()

    if keyword == "now":
        return as_utc(now)
    if keyword == "today":
        return _end_of_local_day(now.astimezone().date())
    if keyword == "tomorrow":
        return _end_of_local_day(now.astimezone().date() + timedelta(days=1))

    span_match = _SPAN_RE.match(raw)
    if span_match and any(span_match.groupdict().values()):
        return as_utc(shift(now, parse_span(raw)))

    try:
        return _end_of_local_day(date.fromisoformat(raw))
    except ValueError:
        pass

    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError as exc:
        raise ValidationError(
            f"Cannot parse deadline: {text!r} (use ISO-8601, today, tomorrow, or a span like +2d)"
        ) from exc


def parse_window_bound(text: str, now: datetime, end: bool = False) -> datetime:
    """Parse one bound of an inclusive log window.

    A bare date covers the whole local day: it means 00:00 as a start and the
    last millisecond of the day as an end. Other forms follow parse_deadline.
    """
    try:
        day = date.fromisoformat(text.strip())
    except ValueError:
        return parse_deadline(text, now)
    if end:
        return as_utc(datetime.combine(day, time.max))
    return as_utc(datetime.combine(day, time.min))


def coerce_deadline(value: str | datetime, now: datetime) -> datetime:
    """Accept either a parsed datetime or deadline text."""
    if isinstance(value, datetime):
        return as_utc(value)
    return parse_deadline(value, now)
