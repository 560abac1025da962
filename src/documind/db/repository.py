"""Repository pattern for all Documind database operations.

Single interface for: URL groups, group URLs, chat sessions, chat messages.
Each call is a direct request/response; the only multi-table transaction is the
group delete (URLs first, then the group). Concurrent writers are
last-write-wins at the row level.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from documind.db.models import ChatSession, MessageRecord, URLGroup

_SENDERS = frozenset(["user", "model", "system"])

_MESSAGE_COLUMNS = "id, session_id, sender, content, metadata, client_token, created_at"


class PersistenceError(RuntimeError):
    """Raised when a write cannot be applied (missing row, constraint failure, locked database)."""


def _new_id() -> str:
    return str(uuid.uuid4())


class Repository:
    """Data access layer for all Documind database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see documind.db.schema.initialize).
        """
        self._conn = conn

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        """Commit the enclosed statements, or roll back and raise PersistenceError.

        Any sqlite3.Error (constraint failure, "database is locked", ...) is
        re-raised as PersistenceError naming *action*.
        """
        try:
            yield
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError(f"Cannot {action}: {exc}") from exc
        except PersistenceError:
            self._conn.rollback()
            raise

    # ------------------------------------------------------------------
    # URL groups
    # ------------------------------------------------------------------

    def create_group(self, user_id: str, name: str) -> URLGroup:
        """Insert a new, empty group owned by *user_id* and return it."""
        group_id = _new_id()
        with self._write(f"create URL group '{name}'"):
            self._conn.execute(
                "INSERT INTO url_groups (id, user_id, name) VALUES (?, ?, ?)",
                (group_id, user_id, name),
            )
        return self.get_group(group_id)  # type: ignore[return-value]

    def get_group(self, group_id: str) -> URLGroup | None:
        row = self._conn.execute(
            "SELECT id, user_id, name, created_at FROM url_groups WHERE id = ?",
            (group_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_group(row, self.list_urls(group_id))

    def list_groups(self, user_id: str) -> list[URLGroup]:
        """Return all groups of *user_id*, oldest first, each with its URLs."""
        rows = self._conn.execute(
            """
            SELECT id, user_id, name, created_at FROM url_groups
            WHERE user_id = ? ORDER BY created_at, rowid
            """,
            (user_id,),
        ).fetchall()
        return [_row_to_group(r, self.list_urls(r["id"])) for r in rows]

    def rename_group(self, group_id: str, name: str) -> None:
        with self._write(f"rename URL group '{group_id}'"):
            cur = self._conn.execute(
                "UPDATE url_groups SET name = ? WHERE id = ?", (name, group_id)
            )
        if cur.rowcount == 0:
            raise PersistenceError(f"URL group '{group_id}' does not exist.")

    def delete_group(self, group_id: str) -> int:
        """Delete a group and all of its URLs in one transaction.

        Returns:
            Number of URL rows removed.

        Raises:
            PersistenceError: If the group does not exist or the delete fails.
        """
        with self._write(f"delete URL group '{group_id}'"):
            removed = self._conn.execute(
                "DELETE FROM group_urls WHERE group_id = ?", (group_id,)
            ).rowcount
            cur = self._conn.execute("DELETE FROM url_groups WHERE id = ?", (group_id,))
            if cur.rowcount == 0:
                raise PersistenceError(f"URL group '{group_id}' does not exist.")
        return removed

    # ------------------------------------------------------------------
    # Group URLs
    # ------------------------------------------------------------------

    def add_url(self, group_id: str, url: str) -> None:
        """Append *url* to the group. Validation is the caller's job."""
        with self._write(f"add URL to group '{group_id}'"):
            self._conn.execute(
                "INSERT INTO group_urls (id, group_id, url) VALUES (?, ?, ?)",
                (_new_id(), group_id, url),
            )

    def add_urls(self, group_id: str, urls: list[str]) -> None:
        """Bulk insert, used when seeding default groups."""
        with self._write(f"add URLs to group '{group_id}'"):
            self._conn.executemany(
                "INSERT INTO group_urls (id, group_id, url) VALUES (?, ?, ?)",
                [(_new_id(), group_id, u) for u in urls],
            )

    def remove_url(self, group_id: str, url: str) -> int:
        """Delete every row matching (group_id, url). Returns rows removed."""
        with self._write(f"remove URL from group '{group_id}'"):
            cur = self._conn.execute(
                "DELETE FROM group_urls WHERE group_id = ? AND url = ?", (group_id, url)
            )
        return cur.rowcount

    def list_urls(self, group_id: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT url FROM group_urls WHERE group_id = ? ORDER BY created_at, rowid",
            (group_id,),
        ).fetchall()
        return [r["url"] for r in rows]

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    def create_session(self, user_id: str, title: str) -> ChatSession:
        session_id = _new_id()
        with self._write("create chat session"):
            self._conn.execute(
                "INSERT INTO chat_sessions (id, user_id, title) VALUES (?, ?, ?)",
                (session_id, user_id, title),
            )
        return self.get_session(session_id)  # type: ignore[return-value]

    def get_session(self, session_id: str) -> ChatSession | None:
        row = self._conn.execute(
            "SELECT id, user_id, title, created_at FROM chat_sessions WHERE id = ?",
            (session_id,),
        ).fetchone()
        return _row_to_session(row) if row else None

    def list_sessions(self, user_id: str) -> list[ChatSession]:
        """Return the sessions of *user_id*, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, user_id, title, created_at FROM chat_sessions
            WHERE user_id = ? ORDER BY created_at DESC, rowid DESC
            """,
            (user_id,),
        ).fetchall()
        return [_row_to_session(r) for r in rows]

    def rename_session(self, session_id: str, title: str) -> None:
        with self._write(f"rename chat session '{session_id}'"):
            cur = self._conn.execute(
                "UPDATE chat_sessions SET title = ? WHERE id = ?", (title, session_id)
            )
        if cur.rowcount == 0:
            raise PersistenceError(f"Chat session '{session_id}' does not exist.")

    def delete_session(self, session_id: str) -> None:
        """Delete a session; its messages go with it (ON DELETE CASCADE)."""
        with self._write(f"delete chat session '{session_id}'"):
            self._conn.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))

    # ------------------------------------------------------------------
    # Chat messages
    # ------------------------------------------------------------------

    def add_message(
        self,
        session_id: str,
        sender: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        client_token: str | None = None,
    ) -> MessageRecord:
        """Insert a message row and return it with its assigned id.

        Raises:
            PersistenceError: If *sender* is unknown, the session is missing,
                or the write fails.
        """
        if sender not in _SENDERS:
            raise PersistenceError(f"Unknown sender '{sender}'.")
        message_id = _new_id()
        with self._write(f"add message to session '{session_id}'"):
            self._conn.execute(
                """
                INSERT INTO chat_messages (id, session_id, sender, content, metadata, client_token)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    session_id,
                    sender,
                    content,
                    _dump(metadata),
                    client_token,
                ),
            )
        return self.get_message(message_id)  # type: ignore[return-value]

    def get_message(self, message_id: str) -> MessageRecord | None:
        row = self._conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE id = ?",
            (message_id,),
        ).fetchone()
        return _row_to_message(row) if row else None

    def get_message_by_token(self, client_token: str) -> MessageRecord | None:
        """Return the row written for the in-memory message with *client_token*."""
        try:
            row = self._conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE client_token = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (client_token,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot look up message token '{client_token}': {exc}") from exc
        return _row_to_message(row) if row else None

    def list_messages(self, session_id: str) -> list[MessageRecord]:
        """Return the messages of a session in creation order."""
        rows = self._conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE session_id = ? "
            "ORDER BY created_at, rowid",
            (session_id,),
        ).fetchall()
        return [_row_to_message(r) for r in rows]

    def update_message(
        self,
        message_id: str,
        content: str,
        metadata: dict[str, Any] | None,
    ) -> None:
        """Overwrite content and metadata of a message (last write wins)."""
        with self._write(f"update message '{message_id}'"):
            cur = self._conn.execute(
                "UPDATE chat_messages SET content = ?, metadata = ? WHERE id = ?",
                (content, _dump(metadata), message_id),
            )
        if cur.rowcount == 0:
            raise PersistenceError(f"Chat message '{message_id}' does not exist.")

    def get_metadata(self, message_id: str) -> dict[str, Any] | None:
        """Return the metadata dict of a message, or None if the row is missing.

        Raises:
            PersistenceError: If the row cannot be read.
        """
        try:
            row = self._conn.execute(
                "SELECT metadata FROM chat_messages WHERE id = ?", (message_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot read message '{message_id}': {exc}") from exc
        if row is None:
            return None
        return json.loads(row["metadata"]) if row["metadata"] else {}

    def update_metadata(self, message_id: str, metadata: dict[str, Any]) -> None:
        with self._write(f"update metadata of message '{message_id}'"):
            cur = self._conn.execute(
                "UPDATE chat_messages SET metadata = ? WHERE id = ?",
                (_dump(metadata), message_id),
            )
        if cur.rowcount == 0:
            raise PersistenceError(f"Chat message '{message_id}' does not exist.")


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _dump(metadata: dict[str, Any] | None) -> str | None:
    return json.dumps(metadata) if metadata is not None else None


def _row_to_group(row: sqlite3.Row, urls: list[str]) -> URLGroup:
    return URLGroup(
        id=row["id"],
        name=row["name"],
        urls=urls,
        user_id=row["user_id"],
        created_at=row["created_at"],
    )


def _row_to_session(row: sqlite3.Row) -> ChatSession:
    return ChatSession(
        id=row["id"],
        title=row["title"] or "",
        user_id=row["user_id"],
        created_at=row["created_at"],
    )


def _row_to_message(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        session_id=row["session_id"],
        sender=row["sender"],
        content=row["content"] or "",
        metadata=row["metadata"],
        client_token=row["client_token"],
        created_at=row["created_at"],
    )
