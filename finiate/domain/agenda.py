"""Agenda entity, write records, and the status text codec.

Pure domain types with no external dependencies.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from finiate.core.exceptions import DataCorruptionError


class AgendaStatus(str, Enum):
    """Agenda lifecycle status. Values are the persisted text form."""

    STORED = "stored"  # shelved, no deadline yet
    ONGOING = "ongoing"  # active, has a deadline
    TERMINATED = "terminated"  # closed

    def encode(self) -> str:
        return self.value

    @classmethod
    def decode(cls, raw: str) -> "AgendaStatus":
        """Decode persisted status text. Unknown values are corruption, never defaulted."""
        try:
            return cls(raw)
        except ValueError as exc:
            raise DataCorruptionError(f"invalid agenda_status in store: {raw!r}") from exc

    @classmethod
    def parse(cls, raw: str) -> "AgendaStatus":
        """Parse user-supplied status text (case-insensitive).

        Raises:
            ValueError: If the text names no status
        """
        return cls(raw.strip().lower())


@dataclass(frozen=True)
class Agenda:
    id: uuid.UUID
    title: str
    status: AgendaStatus
    initiate_at: datetime
    terminate_at: datetime | None  # None while stored

    @property
    def has_deadline(self) -> bool:
        return self.terminate_at is not None

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.status == AgendaStatus.ONGOING
            and self.terminate_at is not None
            and self.terminate_at < now
        )


@dataclass(frozen=True)
class AgendaCreate:
    title: str
    status: AgendaStatus
    terminate_at: datetime | None = None


@dataclass(frozen=True)
class AgendaUpdate:
    """Partial update. Fields left as None are not touched."""

    title: str | None = None
    status: AgendaStatus | None = None
    terminate_at: datetime | None = None

    def is_empty(self) -> bool:
        return self.title is None and self.status is None and self.terminate_at is None
