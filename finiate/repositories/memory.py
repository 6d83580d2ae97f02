"""InMemoryStore: scenario-based, non-transactional test double for the repository contracts.

Rows are kept in their persisted text/millisecond form and decoded on read with
the same codecs as the SQL adapter, so corruption handling can be exercised
without a database.

Scenarios:
- happy_path: every operation succeeds
- log_write_failure: create_log raises StoreError after the agenda write has applied
- store_unavailable: every operation raises a transient StoreError
- slow_store: every operation sleeps `delay` seconds first (timeout testing)
"""

import asyncio
import uuid
from datetime import datetime

from finiate.core.clock import from_millis, new_id, parse_uuid, to_millis, utc_now
from finiate.core.exceptions import StoreError
from finiate.domain.agenda import Agenda, AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import Log, LogCreate, LogType
from finiate.repositories.sqlalchemy_repo import status_filter


class InMemoryStore:
    """Shared row storage for in-memory repositories."""

    VALID_SCENARIOS = {"happy_path", "log_write_failure", "store_unavailable", "slow_store"}

    def __init__(self, scenario: str = "happy_path", delay: float = 0.0):
        """Initialize with a named scenario.

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(
                f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}"
            )
        self.scenario = scenario
        self.delay = delay
        self.agenda_rows: dict[str, dict] = {}
        self.log_rows: dict[str, dict] = {}
        self.commits = 0

    async def checkpoint(self, operation: str) -> None:
        """Apply the scenario before an operation touches rows."""
        if self.scenario == "slow_store":
            await asyncio.sleep(self.delay)
        if self.scenario == "store_unavailable":
            raise StoreError(f"{operation}: store unavailable", cause="connectivity", transient=True)

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)


def _to_agenda(row: dict) -> Agenda:
    return Agenda(
        id=parse_uuid(row["id"]),
        title=row["title"],
        status=AgendaStatus.decode(row["agenda_status"]),
        initiate_at=from_millis(row["initiate_at"]),
        terminate_at=from_millis(row["terminate_at"]) if row["terminate_at"] is not None else None,
    )


def _to_log(row: dict) -> Log:
    return Log(
        id=parse_uuid(row["id"]),
        agenda_id=parse_uuid(row["agenda_id"]) if row["agenda_id"] is not None else None,
        content=row["content"],
        create_at=from_millis(row["create_at"]),
        log_type=LogType.decode(row["log_type"]),
    )


class InMemoryAgendaRepo:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create_agenda(self, agenda: AgendaCreate) -> uuid.UUID:
        await self.store.checkpoint("create_agenda")
        agenda_id = new_id()
        self.store.agenda_rows[str(agenda_id)] = {
            "id": str(agenda_id),
            "title": agenda.title,
            "agenda_status": agenda.status.encode(),
            "initiate_at": to_millis(utc_now()),
            "terminate_at": to_millis(agenda.terminate_at) if agenda.terminate_at is not None else None,
        }
        return agenda_id

    async def delete_agenda_by_id(self, agenda_id: uuid.UUID) -> None:
        await self.store.checkpoint("delete_agenda_by_id")
        key = str(agenda_id)
        if self.store.agenda_rows.pop(key, None) is None:
            return
        # ON DELETE SET NULL
        for row in self.store.log_rows.values():
            if row["agenda_id"] == key:
                row["agenda_id"] = None

    async def update_agenda(self, agenda_id: uuid.UUID, changes: AgendaUpdate) -> None:
        await self.store.checkpoint("update_agenda")
        row = self.store.agenda_rows.get(str(agenda_id))
        if row is None:
            return
        if changes.title is not None:
            row["title"] = changes.title
        if changes.status is not None:
            row["agenda_status"] = changes.status.encode()
        if changes.terminate_at is not None:
            row["terminate_at"] = to_millis(changes.terminate_at)

    async def get_agenda_by_id(self, agenda_id: uuid.UUID) -> Agenda | None:
        await self.store.checkpoint("get_agenda_by_id")
        row = self.store.agenda_rows.get(str(agenda_id))
        return _to_agenda(row) if row is not None else None

    async def get_agendas_by_title(self, title: str) -> list[Agenda]:
        await self.store.checkpoint("get_agendas_by_title")
        return [_to_agenda(r) for r in self.store.agenda_rows.values() if r["title"] == title]

    async def get_agendas_by_status(self, status: AgendaStatus | None = None) -> list[Agenda]:
        await self.store.checkpoint("get_agendas_by_status")
        status = status_filter(status)
        rows = self.store.agenda_rows.values()
        if status is not None:
            rows = [r for r in rows if r["agenda_status"] == status.encode()]
        return [_to_agenda(r) for r in rows]

    async def count_agendas_by_status(self, status: AgendaStatus | None = None) -> int:
        return len(await self.get_agendas_by_status(status))

    async def get_agendas_by_terminate_time_range(self, start: datetime, end: datetime) -> list[Agenda]:
        await self.store.checkpoint("get_agendas_by_terminate_time_range")
        low, high = to_millis(start), to_millis(end)
        return [
            _to_agenda(r)
            for r in self.store.agenda_rows.values()
            if r["terminate_at"] is not None and low <= r["terminate_at"] <= high
        ]


class InMemoryLogRepo:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create_log(self, log: LogCreate) -> uuid.UUID:
        await self.store.checkpoint("create_log")
        if self.store.scenario == "log_write_failure":
            raise StoreError("create_log: disk I/O error", cause="backend")
        if str(log.agenda_id) not in self.store.agenda_rows:
            raise StoreError("create_log: constraint violated: FOREIGN KEY constraint failed", cause="constraint")
        log_id = new_id()
        self.store.log_rows[str(log_id)] = {
            "id": str(log_id),
            "agenda_id": str(log.agenda_id),
            "content": log.content,
            "log_type": log.log_type.encode(),
            "create_at": to_millis(utc_now()),
        }
        return log_id

    async def delete_log(self, log_id: uuid.UUID) -> None:
        await self.store.checkpoint("delete_log")
        self.store.log_rows.pop(str(log_id), None)

    def _ordered(self, rows) -> list[Log]:
        return [_to_log(r) for r in sorted(rows, key=lambda r: (r["create_at"], r["id"]))]

    async def get_logs_by_agenda_id(self, agenda_id: uuid.UUID) -> list[Log]:
        await self.store.checkpoint("get_logs_by_agenda_id")
        key = str(agenda_id)
        return self._ordered(r for r in self.store.log_rows.values() if r["agenda_id"] == key)

    async def get_logs_by_time_range(self, start: datetime, end: datetime) -> list[Log]:
        await self.store.checkpoint("get_logs_by_time_range")
        low, high = to_millis(start), to_millis(end)
        return self._ordered(r for r in self.store.log_rows.values() if low <= r["create_at"] <= high)


class InMemoryUnitOfWork:
    """Writes apply immediately; commit only counts. Nothing is rolled back."""

    transactional = False

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.agendas = InMemoryAgendaRepo(store)
        self.logs = InMemoryLogRepo(store)

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def commit(self) -> None:
        self.store.commits += 1
