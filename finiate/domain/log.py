"""Log entity (append-only audit entry) and the log-type text codec."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from finiate.core.exceptions import DataCorruptionError


class LogType(str, Enum):
    """Kind of event recorded against an agenda."""

    ACTIVATE = "activate"  # agenda created or started
    PUT_OFF = "put_off"  # deadline pushed back
    TERMINATE = "terminate"  # agenda closed
    COMMON_LOG = "common_log"  # free-standing note, no transition

    def encode(self) -> str:
        return self.value

    @classmethod
    def decode(cls, raw: str) -> "LogType":
        try:
            return cls(raw)
        except ValueError as exc:
            raise DataCorruptionError(f"invalid log_type in store: {raw!r}") from exc


@dataclass(frozen=True)
class Log:
    id: uuid.UUID
    agenda_id: uuid.UUID | None  # None once the agenda was deleted
    content: str
    create_at: datetime
    log_type: LogType


@dataclass(frozen=True)
class LogCreate:
    agenda_id: uuid.UUID
    content: str
    log_type: LogType
