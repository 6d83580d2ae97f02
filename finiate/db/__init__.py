"""Database package: declarative base and the explicit database handle."""

from finiate.db.base import Base, Database

__all__ = [
    "Base",
    "Database",
]
