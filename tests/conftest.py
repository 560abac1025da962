"""Shared pytest fixtures."""

from __future__ import annotations

import os
import sqlite3

import pytest

# Rich consoles are created at import time and wrap at the terminal width;
# use a wide fixed width so long tmp paths don't split asserted phrases.
os.environ.setdefault("COLUMNS", "200")

from documind.db.connection import Database
from documind.db.schema import initialize
from documind.rag.llm_client import invalidate_backend

_WRITE_VERBS = ("INSERT", "UPDATE", "DELETE")


class _LockedConnection:
    """Connection wrapper whose writes fail as if another process held the lock."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, sql, params=()):
        if sql.lstrip().upper().startswith(_WRITE_VERBS):
            raise sqlite3.OperationalError("database is locked")
        return self._conn.execute(sql, params)

    def executemany(self, sql, seq):
        raise sqlite3.OperationalError("database is locked")

    def __getattr__(self, name):
        return getattr(self._conn, name)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.documind and credential env vars."""
    home = tmp_path / "home" / ".documind"
    monkeypatch.setattr("documind.config._GLOBAL_CONFIG_PATH", home / "config.yaml")
    monkeypatch.setattr("documind.settings._SETTINGS_PATH", home / "settings.yaml")
    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "DOCUMIND_MODEL", "DOCUMIND_USER"):
        monkeypatch.delenv(var, raising=False)
    invalidate_backend()
    yield home
    invalidate_backend()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-1234")
    return "test-key-1234"


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".documind.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def lock_database():
    """Return a function that makes every later write of a Repository fail."""

    def _lock(repo) -> None:
        repo._conn = _LockedConnection(repo._conn)

    return _lock
