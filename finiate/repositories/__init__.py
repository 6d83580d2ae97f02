"""Repository contracts and their backends."""

from finiate.repositories.base import AgendaRepo, LogRepo, UnitOfWork
from finiate.repositories.memory import InMemoryStore, InMemoryUnitOfWork
from finiate.repositories.sqlalchemy_repo import (
    SqlAlchemyAgendaRepo,
    SqlAlchemyLogRepo,
    SqlAlchemyUnitOfWork,
)

__all__ = [
    "AgendaRepo",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "LogRepo",
    "SqlAlchemyAgendaRepo",
    "SqlAlchemyLogRepo",
    "SqlAlchemyUnitOfWork",
    "UnitOfWork",
]
