"""Wall-clock and identifier helpers shared by the domain and the stores."""

import threading
import uuid
from datetime import UTC, datetime, timedelta

from finiate.core.exceptions import DataCorruptionError

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)

_lock = threading.Lock()
_last: datetime | None = None


def utc_now() -> datetime:
    """Current time at the millisecond precision the store keeps.

    Strictly increasing within the process: two calls in the same millisecond
    are one millisecond apart, so create_at orders writes by creation.
    """
    global _last
    now = datetime.now(UTC)
    now = now.replace(microsecond=(now.microsecond // 1000) * 1000)
    with _lock:
        if _last is not None and now <= _last:
            now = _last + _ONE_MS
        _last = now
    return now


def new_id() -> uuid.UUID:
    return uuid.uuid4()


def to_millis(value: datetime) -> int:
    """Convert an aware datetime to integer milliseconds since epoch."""
    if value.tzinfo is None:
        raise ValueError("naive datetime cannot be stored; attach a timezone first")
    return (value - _EPOCH) // _ONE_MS


def from_millis(value: int) -> datetime:
    """Convert stored milliseconds back to an aware UTC datetime."""
    try:
        return _EPOCH + int(value) * _ONE_MS
    except (OverflowError, ValueError, TypeError) as exc:
        raise DataCorruptionError(f"invalid timestamp in store: {value!r}") from exc


def parse_uuid(value: str) -> uuid.UUID:
    """Parse a stored id, treating malformed values as corruption."""
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError, TypeError) as exc:
        raise DataCorruptionError(f"invalid id in store: {value!r}") from exc
