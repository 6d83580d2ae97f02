"""SQLAlchemy adapter for the repository contracts.

Repositories share one AsyncSession and only flush; the unit of work owns the
transaction, so an agenda write and its log write commit together or not at all.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finiate.core.clock import from_millis, new_id, parse_uuid, to_millis, utc_now
from finiate.core.exceptions import StoreError, ValidationError
from finiate.db.models.agenda import AgendaRow
from finiate.db.models.log import LogRow
from finiate.domain.agenda import Agenda, AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import Log, LogCreate, LogType

logger = structlog.get_logger(__name__)


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise backend exceptions as StoreError, keeping the native diagnostic."""
    try:
        yield
    except IntegrityError as exc:
        raise StoreError(f"{operation}: constraint violated: {exc.orig}", cause="constraint") from exc
    except OperationalError as exc:
        raise StoreError(f"{operation}: {exc.orig}", cause="connectivity", transient=True) from exc
    except DBAPIError as exc:
        raise StoreError(
            f"{operation}: {exc.orig}",
            cause="connectivity" if exc.connection_invalidated else "backend",
            transient=exc.connection_invalidated,
        ) from exc
    except SQLAlchemyError as exc:
        raise StoreError(f"{operation}: {exc}", cause="backend") from exc


def status_filter(status: AgendaStatus | str | None) -> AgendaStatus | None:
    """Normalize an optional status filter given as enum or text."""
    if status is None:
        return None
    try:
        return AgendaStatus.parse(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown agenda status: {status!r}") from exc


def _to_agenda(row: AgendaRow) -> Agenda:
    return Agenda(
        id=parse_uuid(row.id),
        title=row.title,
        status=AgendaStatus.decode(row.agenda_status),
        initiate_at=from_millis(row.initiate_at),
        terminate_at=from_millis(row.terminate_at) if row.terminate_at is not None else None,
    )


def _to_log(row: LogRow) -> Log:
    return Log(
        id=parse_uuid(row.id),
        agenda_id=parse_uuid(row.agenda_id) if row.agenda_id is not None else None,
        content=row.content,
        create_at=from_millis(row.create_at),
        log_type=LogType.decode(row.log_type),
    )


class SqlAlchemyAgendaRepo:
    """AgendaRepo over the `agenda` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_agenda(self, agenda: AgendaCreate) -> uuid.UUID:
        agenda_id = new_id()
        row = AgendaRow(
            id=str(agenda_id),
            title=agenda.title,
            agenda_status=agenda.status.encode(),
            initiate_at=to_millis(utc_now()),
            terminate_at=to_millis(agenda.terminate_at) if agenda.terminate_at is not None else None,
        )
        with translate_store_errors("create_agenda"):
            self.session.add(row)
            await self.session.flush()
        return agenda_id

    async def delete_agenda_by_id(self, agenda_id: uuid.UUID) -> None:
        with translate_store_errors("delete_agenda_by_id"):
            await self.session.execute(delete(AgendaRow).where(AgendaRow.id == str(agenda_id)))

    async def update_agenda(self, agenda_id: uuid.UUID, changes: AgendaUpdate) -> None:
        values: dict = {}
        if changes.title is not None:
            values["title"] = changes.title
        if changes.status is not None:
            values["agenda_status"] = changes.status.encode()
        if changes.terminate_at is not None:
            values["terminate_at"] = to_millis(changes.terminate_at)

        # Nothing to write; still a success
        if not values:
            return

        with translate_store_errors("update_agenda"):
            await self.session.execute(
                update(AgendaRow)
                .where(AgendaRow.id == str(agenda_id))
                .values(**values)
                .execution_options(synchronize_session=False)
            )

    async def _fetch(self, stmt) -> list[Agenda]:
        with translate_store_errors("select_agenda"):
            result = await self.session.execute(stmt.execution_options(populate_existing=True))
            rows = result.scalars().all()
        return [_to_agenda(row) for row in rows]

    async def get_agenda_by_id(self, agenda_id: uuid.UUID) -> Agenda | None:
        agendas = await self._fetch(select(AgendaRow).where(AgendaRow.id == str(agenda_id)))
        return agendas[0] if agendas else None

    async def get_agendas_by_title(self, title: str) -> list[Agenda]:
        return await self._fetch(select(AgendaRow).where(AgendaRow.title == title))

    async def get_agendas_by_status(self, status: AgendaStatus | None = None) -> list[Agenda]:
        status = status_filter(status)
        stmt = select(AgendaRow)
        if status is not None:
            stmt = stmt.where(AgendaRow.agenda_status == status.encode())
        return await self._fetch(stmt)

    async def count_agendas_by_status(self, status: AgendaStatus | None = None) -> int:
        status = status_filter(status)
        stmt = select(func.count()).select_from(AgendaRow)
        if status is not None:
            stmt = stmt.where(AgendaRow.agenda_status == status.encode())
        with translate_store_errors("count_agendas_by_status"):
            result = await self.session.execute(stmt)
            return int(result.scalar_one())

    async def get_agendas_by_terminate_time_range(self, start: datetime, end: datetime) -> list[Agenda]:
        return await self._fetch(
            select(AgendaRow).where(
                AgendaRow.terminate_at >= to_millis(start),
                AgendaRow.terminate_at <= to_millis(end),
            )
        )


class SqlAlchemyLogRepo:
    """LogRepo over the `log` table. Insert and delete only; rows are never updated."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_log(self, log: LogCreate) -> uuid.UUID:
        log_id = new_id()
        row = LogRow(
            id=str(log_id),
            agenda_id=str(log.agenda_id),
            content=log.content,
            log_type=log.log_type.encode(),
            create_at=to_millis(utc_now()),
        )
        with translate_store_errors("create_log"):
            self.session.add(row)
            await self.session.flush()
        return log_id

    async def delete_log(self, log_id: uuid.UUID) -> None:
        with translate_store_errors("delete_log"):
            await self.session.execute(delete(LogRow).where(LogRow.id == str(log_id)))

    async def _fetch(self, stmt) -> list[Log]:
        with translate_store_errors("select_log"):
            result = await self.session.execute(
                stmt.order_by(LogRow.create_at, LogRow.id).execution_options(populate_existing=True)
            )
            rows = result.scalars().all()
        return [_to_log(row) for row in rows]

    async def get_logs_by_agenda_id(self, agenda_id: uuid.UUID) -> list[Log]:
        return await self._fetch(select(LogRow).where(LogRow.agenda_id == str(agenda_id)))

    async def get_logs_by_time_range(self, start: datetime, end: datetime) -> list[Log]:
        return await self._fetch(
            select(LogRow).where(
                LogRow.create_at >= to_millis(start),
                LogRow.create_at <= to_millis(end),
            )
        )


class SqlAlchemyUnitOfWork:
    """One session, one transaction. Rolled back unless commit() is reached."""

    transactional = True

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.agendas = SqlAlchemyAgendaRepo(self.session)
        self.logs = SqlAlchemyLogRepo(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None:
                logger.debug("unit_of_work_rollback", error_type=exc_type.__name__)
                await self.session.rollback()
        finally:
            await self.session.close()
            self.session = None

    async def commit(self) -> None:
        with translate_store_errors("commit"):
            await self.session.commit()
