"""Documind persistence layer."""

from documind.db.connection import Database
from documind.db.migrations import MIGRATIONS, run_migrations
from documind.db.repository import PersistenceError, Repository
from documind.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "PersistenceError",
    "Repository",
]
