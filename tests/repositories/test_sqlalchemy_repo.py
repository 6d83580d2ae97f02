"""Integration tests for the SQLAlchemy repositories against a real SQLite file."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import text

from finiate.core.clock import to_millis, utc_now
from finiate.core.exceptions import DataCorruptionError, StoreError, ValidationError
from finiate.domain.agenda import AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import LogCreate, LogType
from finiate.repositories.base import AgendaRepo, LogRepo, UnitOfWork
from finiate.repositories.sqlalchemy_repo import (
    SqlAlchemyAgendaRepo,
    SqlAlchemyLogRepo,
    SqlAlchemyUnitOfWork,
)

pytestmark = pytest.mark.integration

DEADLINE = datetime(2026, 11, 1, 18, 0, tzinfo=UTC)


@pytest.fixture
def agendas(session) -> SqlAlchemyAgendaRepo:
    return SqlAlchemyAgendaRepo(session)


@pytest.fixture
def logs(session) -> SqlAlchemyLogRepo:
    return SqlAlchemyLogRepo(session)


def ongoing(title: str, terminate_at: datetime = DEADLINE) -> AgendaCreate:
    return AgendaCreate(title=title, status=AgendaStatus.ONGOING, terminate_at=terminate_at)


class TestContracts:
    async def test_repositories_satisfy_protocols(self, agendas, logs):
        assert isinstance(agendas, AgendaRepo)
        assert isinstance(logs, LogRepo)

    async def test_entered_unit_of_work_satisfies_protocol(self, database):
        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            assert isinstance(uow, UnitOfWork)
            assert uow.transactional is True


class TestAgendaRepo:
    async def test_create_and_get_round_trip(self, agendas):
        before = utc_now()
        agenda_id = await agendas.create_agenda(ongoing("Ship release"))
        after = utc_now()

        agenda = await agendas.get_agenda_by_id(agenda_id)

        assert agenda is not None
        assert agenda.id == agenda_id
        assert agenda.title == "Ship release"
        assert agenda.status == AgendaStatus.ONGOING
        assert agenda.terminate_at == DEADLINE
        assert before <= agenda.initiate_at <= after

    async def test_stored_agenda_keeps_no_deadline(self, agendas):
        agenda_id = await agendas.create_agenda(
            AgendaCreate(title="Someday", status=AgendaStatus.STORED, terminate_at=None)
        )
        agenda = await agendas.get_agenda_by_id(agenda_id)
        assert agenda.terminate_at is None

    async def test_unknown_id_returns_none(self, agendas):
        assert await agendas.get_agenda_by_id(uuid.uuid4()) is None

    async def test_delete_is_idempotent(self, agendas):
        agenda_id = await agendas.create_agenda(ongoing("Temporary"))

        await agendas.delete_agenda_by_id(agenda_id)
        await agendas.delete_agenda_by_id(agenda_id)
        await agendas.delete_agenda_by_id(uuid.uuid4())

        assert await agendas.get_agenda_by_id(agenda_id) is None

    async def test_partial_update_changes_only_given_fields(self, agendas):
        agenda_id = await agendas.create_agenda(ongoing("Write report"))
        original = await agendas.get_agenda_by_id(agenda_id)

        await agendas.update_agenda(agenda_id, AgendaUpdate(status=AgendaStatus.TERMINATED))
        updated = await agendas.get_agenda_by_id(agenda_id)

        assert updated.status == AgendaStatus.TERMINATED
        assert updated.title == original.title
        assert updated.terminate_at == original.terminate_at
        assert updated.initiate_at == original.initiate_at

    async def test_empty_update_is_noop(self, agendas):
        agenda_id = await agendas.create_agenda(ongoing("Untouched"))
        original = await agendas.get_agenda_by_id(agenda_id)

        await agendas.update_agenda(agenda_id, AgendaUpdate())

        assert await agendas.get_agenda_by_id(agenda_id) == original

    async def test_update_unknown_id_succeeds(self, agendas):
        await agendas.update_agenda(uuid.uuid4(), AgendaUpdate(title="ghost"))
        assert await agendas.count_agendas_by_status() == 0

    async def test_duplicate_titles_allowed(self, agendas):
        await agendas.create_agenda(ongoing("Groceries"))
        await agendas.create_agenda(ongoing("Groceries"))
        await agendas.create_agenda(ongoing("Laundry"))

        assert len(await agendas.get_agendas_by_title("Groceries")) == 2
        assert await agendas.get_agendas_by_title("groceries") == []

    async def test_status_filter_partitions_all_agendas(self, agendas):
        await agendas.create_agenda(ongoing("a"))
        await agendas.create_agenda(ongoing("b"))
        await agendas.create_agenda(AgendaCreate(title="c", status=AgendaStatus.STORED))
        done = await agendas.create_agenda(ongoing("d"))
        await agendas.update_agenda(done, AgendaUpdate(status=AgendaStatus.TERMINATED))

        everything = await agendas.get_agendas_by_status(None)
        by_status = {s: await agendas.get_agendas_by_status(s) for s in AgendaStatus}

        assert len(everything) == 4
        assert sum(len(v) for v in by_status.values()) == len(everything)
        assert await agendas.count_agendas_by_status(AgendaStatus.ONGOING) == 2
        assert await agendas.count_agendas_by_status(AgendaStatus.STORED) == 1
        assert await agendas.count_agendas_by_status(AgendaStatus.TERMINATED) == 1
        assert await agendas.count_agendas_by_status() == 4

    async def test_status_filter_accepts_text(self, agendas):
        await agendas.create_agenda(ongoing("a"))
        assert len(await agendas.get_agendas_by_status("ongoing")) == 1

    async def test_unknown_status_filter_rejected(self, agendas):
        with pytest.raises(ValidationError):
            await agendas.get_agendas_by_status("paused")

    async def test_terminate_range_is_inclusive(self, agendas):
        start = DEADLINE
        end = DEADLINE + timedelta(days=1)
        on_start = await agendas.create_agenda(ongoing("on start", start))
        on_end = await agendas.create_agenda(ongoing("on end", end))
        await agendas.create_agenda(ongoing("before", start - timedelta(milliseconds=1)))
        await agendas.create_agenda(ongoing("after", end + timedelta(milliseconds=1)))
        await agendas.create_agenda(AgendaCreate(title="stored", status=AgendaStatus.STORED))

        found = await agendas.get_agendas_by_terminate_time_range(start, end)

        assert {a.id for a in found} == {on_start, on_end}

    async def test_empty_terminate_range(self, agendas):
        await agendas.create_agenda(ongoing("a"))
        found = await agendas.get_agendas_by_terminate_time_range(
            DEADLINE + timedelta(days=1), DEADLINE + timedelta(days=2)
        )
        assert found == []

    async def test_delete_agenda_keeps_its_logs(self, agendas, logs):
        agenda_id = await agendas.create_agenda(
            AgendaCreate(title="Drop me", status=AgendaStatus.STORED, terminate_at=None)
        )
        log_id = await logs.create_log(LogCreate(agenda_id=agenda_id, content="", log_type=LogType.ACTIVATE))
        (log,) = await logs.get_logs_by_agenda_id(agenda_id)

        await agendas.delete_agenda_by_id(agenda_id)

        assert await agendas.get_agenda_by_id(agenda_id) is None
        assert await logs.get_logs_by_agenda_id(agenda_id) == []
        (orphan,) = await logs.get_logs_by_time_range(log.create_at, log.create_at)
        assert orphan.id == log_id
        assert orphan.agenda_id is None

    async def test_unknown_persisted_status_is_corruption(self, session, agendas):
        bad_id = str(uuid.uuid4())
        await session.execute(
            text(
                "INSERT INTO agenda (id, title, agenda_status, initiate_at, terminate_at) "
                "VALUES (:id, 'Broken', 'paused', :now, NULL)"
            ),
            {"id": bad_id, "now": to_millis(utc_now())},
        )
        await session.commit()

        with pytest.raises(DataCorruptionError):
            await agendas.get_agenda_by_id(uuid.UUID(bad_id))


class TestLogRepo:
    async def test_logs_come_back_oldest_first(self, agendas, logs):
        agenda_id = await agendas.create_agenda(ongoing("Ordered"))
        ids = [
            await logs.create_log(LogCreate(agenda_id=agenda_id, content=str(i), log_type=LogType.COMMON_LOG))
            for i in range(5)
        ]

        fetched = await logs.get_logs_by_agenda_id(agenda_id)

        assert [log.id for log in fetched] == ids
        assert all(a.create_at < b.create_at for a, b in zip(fetched, fetched[1:]))

    async def test_log_fields_round_trip(self, agendas, logs):
        agenda_id = await agendas.create_agenda(ongoing("Fields"))
        log_id = await logs.create_log(
            LogCreate(agenda_id=agenda_id, content="moved to friday", log_type=LogType.PUT_OFF)
        )

        (log,) = await logs.get_logs_by_agenda_id(agenda_id)

        assert log.id == log_id
        assert log.agenda_id == agenda_id
        assert log.content == "moved to friday"
        assert log.log_type == LogType.PUT_OFF

    async def test_unknown_agenda_has_no_logs(self, logs):
        assert await logs.get_logs_by_agenda_id(uuid.uuid4()) == []

    async def test_log_for_unknown_agenda_violates_constraint(self, logs):
        with pytest.raises(StoreError) as exc_info:
            await logs.create_log(
                LogCreate(agenda_id=uuid.uuid4(), content="orphan", log_type=LogType.COMMON_LOG)
            )
        assert exc_info.value.cause == "constraint"

    async def test_delete_log_is_idempotent(self, agendas, logs):
        agenda_id = await agendas.create_agenda(ongoing("Cleanup"))
        log_id = await logs.create_log(LogCreate(agenda_id=agenda_id, content="", log_type=LogType.ACTIVATE))

        await logs.delete_log(log_id)
        await logs.delete_log(log_id)

        assert await logs.get_logs_by_agenda_id(agenda_id) == []

    async def test_time_range_is_inclusive(self, agendas, logs):
        agenda_id = await agendas.create_agenda(ongoing("Window"))
        for i in range(3):
            await logs.create_log(LogCreate(agenda_id=agenda_id, content=str(i), log_type=LogType.COMMON_LOG))
        first, middle, last = await logs.get_logs_by_agenda_id(agenda_id)

        window = await logs.get_logs_by_time_range(first.create_at, middle.create_at)
        assert [log.id for log in window] == [first.id, middle.id]

        everything = await logs.get_logs_by_time_range(first.create_at, last.create_at)
        assert len(everything) == 3

    async def test_unknown_persisted_log_type_is_corruption(self, session, agendas, logs):
        agenda_id = await agendas.create_agenda(ongoing("Corrupt log"))
        await session.execute(
            text(
                "INSERT INTO log (id, agenda_id, content, log_type, create_at) "
                "VALUES (:id, :agenda_id, '', 'reminder', :now)"
            ),
            {"id": str(uuid.uuid4()), "agenda_id": str(agenda_id), "now": to_millis(utc_now())},
        )

        with pytest.raises(DataCorruptionError):
            await logs.get_logs_by_agenda_id(agenda_id)


class TestUnitOfWork:
    async def test_commit_persists_both_writes(self, database):
        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            agenda_id = await uow.agendas.create_agenda(ongoing("Committed"))
            await uow.logs.create_log(LogCreate(agenda_id=agenda_id, content="", log_type=LogType.ACTIVATE))
            await uow.commit()

        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            assert await uow.agendas.get_agenda_by_id(agenda_id) is not None
            assert len(await uow.logs.get_logs_by_agenda_id(agenda_id)) == 1

    async def test_exception_rolls_back_everything(self, database):
        with pytest.raises(RuntimeError):
            async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
                await uow.agendas.create_agenda(ongoing("Rolled back"))
                raise RuntimeError("boom")

        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            assert await uow.agendas.count_agendas_by_status() == 0

    async def test_leaving_without_commit_discards_writes(self, database):
        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            await uow.agendas.create_agenda(ongoing("Never committed"))

        async with SqlAlchemyUnitOfWork(database.session_factory) as uow:
            assert await uow.agendas.get_agendas_by_title("Never committed") == []
