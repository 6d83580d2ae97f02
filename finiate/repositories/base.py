"""Repository contracts: the storage seam between the lifecycle service and a backend.

Every backend MUST provide these operations with the same conventions:
- absence is a value (None / empty list), never an error
- delete and update of an unknown id succeed and change nothing
- time ranges are inclusive on both bounds
- backend failures surface as StoreError; unrecognized persisted values as
  DataCorruptionError

A UnitOfWork groups one agenda write and its log write. Transactional backends
commit both or neither; non-transactional ones (transactional = False) apply
each write immediately, which is what makes PartialFailureError possible.
"""

import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable

from finiate.domain.agenda import Agenda, AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import Log, LogCreate


@runtime_checkable
class AgendaRepo(Protocol):
    """Storage operations over agendas."""

    async def create_agenda(self, agenda: AgendaCreate) -> uuid.UUID:
        """Insert an agenda with a fresh id and initiate_at = now. Duplicate titles are allowed."""
        ...

    async def delete_agenda_by_id(self, agenda_id: uuid.UUID) -> None:
        """Delete an agenda. Unknown ids succeed silently. Logs are kept, their agenda_id cleared."""
        ...

    async def update_agenda(self, agenda_id: uuid.UUID, changes: AgendaUpdate) -> None:
        """Apply only the fields set on `changes`. Empty updates and unknown ids are no-ops."""
        ...

    async def get_agenda_by_id(self, agenda_id: uuid.UUID) -> Agenda | None:
        ...

    async def get_agendas_by_title(self, title: str) -> list[Agenda]:
        """Exact title match, zero or more results."""
        ...

    async def get_agendas_by_status(self, status: AgendaStatus | None = None) -> list[Agenda]:
        """Agendas in `status`, or every agenda when status is None."""
        ...

    async def count_agendas_by_status(self, status: AgendaStatus | None = None) -> int:
        ...

    async def get_agendas_by_terminate_time_range(self, start: datetime, end: datetime) -> list[Agenda]:
        """Agendas with start <= terminate_at <= end. Agendas without a deadline never match."""
        ...


@runtime_checkable
class LogRepo(Protocol):
    """Storage operations over the append-only log."""

    async def create_log(self, log: LogCreate) -> uuid.UUID:
        """Append a log with a fresh id and create_at = now. Unknown agenda_id is a StoreError."""
        ...

    async def delete_log(self, log_id: uuid.UUID) -> None:
        """Administrative removal. Unknown ids succeed silently."""
        ...

    async def get_logs_by_agenda_id(self, agenda_id: uuid.UUID) -> list[Log]:
        """Logs of one agenda, oldest first."""
        ...

    async def get_logs_by_time_range(self, start: datetime, end: datetime) -> list[Log]:
        """Logs with start <= create_at <= end, oldest first."""
        ...


@runtime_checkable
class UnitOfWork(Protocol):
    """One logical write unit spanning both repositories."""

    transactional: bool
    agendas: AgendaRepo
    logs: LogRepo

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...

    async def commit(self) -> None:
        ...
