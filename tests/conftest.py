"""Shared test fixtures for all test groups."""

import uuid

import pytest

from finiate.db.base import Database
from finiate.domain.log import Log
from finiate.repositories.memory import InMemoryStore
from finiate.repositories.sqlalchemy_repo import SqlAlchemyUnitOfWork
from finiate.services.lifecycle import LifecycleService


@pytest.fixture
def memory_store():
    """Fresh InMemoryStore with happy_path scenario (default)."""
    return InMemoryStore(scenario="happy_path")


@pytest.fixture
def memory_service(memory_store: InMemoryStore) -> LifecycleService:
    """LifecycleService over the in-memory store, no retries."""
    return LifecycleService(memory_store.unit_of_work, retry_attempts=1)


@pytest.fixture
async def database(tmp_path):
    """Isolated SQLite database per test, schema created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'finiate.db'}")
    await db.init()
    yield db
    await db.close()


@pytest.fixture
async def session(database: Database):
    """Create an async session for tests."""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def sql_service(database: Database) -> LifecycleService:
    """LifecycleService over the SQLite database."""
    return LifecycleService(lambda: SqlAlchemyUnitOfWork(database.session_factory), retry_attempts=1)


@pytest.fixture(params=["memory", "sqlite"])
async def service(request, tmp_path):
    """LifecycleService over each backend; lifecycle behavior must not depend on it."""
    if request.param == "memory":
        yield LifecycleService(InMemoryStore().unit_of_work, retry_attempts=1)
        return

    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'lifecycle.db'}")
    await db.init()
    yield LifecycleService(lambda: SqlAlchemyUnitOfWork(db.session_factory), retry_attempts=1)
    await db.close()


@pytest.fixture
def read_logs():
    """Read an agenda's logs straight from the service's store."""

    async def _read(service: LifecycleService, agenda_id: uuid.UUID | str) -> list[Log]:
        async with service.uow_factory() as uow:
            return await uow.logs.get_logs_by_agenda_id(uuid.UUID(str(agenda_id)))

    return _read
