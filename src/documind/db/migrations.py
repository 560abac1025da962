"""Forward-only migration runner for Documind's database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_NOW = "(strftime('%Y-%m-%d %H:%M:%f', 'now'))"

_V1_SQL = f"""
CREATE TABLE IF NOT EXISTS url_groups (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    name        TEXT NOT NULL,
    created_at  DATETIME NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS group_urls (
    id          TEXT PRIMARY KEY,
    group_id    TEXT NOT NULL REFERENCES url_groups(id) ON DELETE CASCADE,
    url         TEXT NOT NULL,
    created_at  DATETIME NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS chat_sessions (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT,
    created_at  DATETIME NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS chat_messages (
    id          TEXT PRIMARY KEY,
    session_id  TEXT NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
    sender      TEXT NOT NULL CHECK (sender IN ('user', 'model', 'system')),
    content     TEXT,
    metadata    TEXT,
    created_at  DATETIME NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_group_urls_group ON group_urls(group_id);
CREATE INDEX IF NOT EXISTS idx_chat_messages_session ON chat_messages(session_id);
"""

# Correlation token carried from the in-memory message to its row.
_V2_SQL = """
ALTER TABLE chat_messages ADD COLUMN client_token TEXT;
CREATE INDEX IF NOT EXISTS idx_chat_messages_token ON chat_messages(client_token);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
