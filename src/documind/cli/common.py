"""Helpers shared by the CLI commands: opening the project, resolving names."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from documind.chat.controller import ChatController
from documind.chat.messages import Message
from documind.cli.errors import err_config, err_group_not_found, err_no_db
from documind.config import ConfigError, load_config
from documind.db.connection import Database
from documind.db.models import ChatSession, URLGroup
from documind.db.repository import Repository
from documind.db.schema import initialize

console = Console()

DEFAULT_DB = Path(".documind.db")


@contextmanager
def open_controller(
    db_path: Path,
    *,
    on_update: Callable[[Message], None] | None = None,
) -> Iterator[ChatController]:
    """Open the project database and yield a controller with groups loaded.

    Config is read from the directory holding the database. Exits with code 1
    if the database or the config is unusable.
    """
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    try:
        cfg = load_config(db_path.resolve().parent)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    conn = Database(db_path).connect()
    try:
        initialize(conn)
        controller = ChatController(Repository(conn), cfg, on_update=on_update)
        controller.groups.load()
        yield controller
    finally:
        conn.close()


def select_group(controller: ChatController, name: str | None) -> URLGroup | None:
    """Make the group called (or with id) *name* active; None keeps the default."""
    if name is None:
        return controller.view.active_group
    return require_group(controller, name)


def require_group(controller: ChatController, name: str) -> URLGroup:
    """Make the group called (or with id) *name* active; exit 1 if there is none."""
    group = controller.groups.find(name)
    if group is None:
        console.print(err_group_not_found(name, [g.name for g in controller.view.groups]))
        raise typer.Exit(1)
    return controller.groups.select_group(group.id)


def find_session(controller: ChatController, ref: str) -> ChatSession | None:
    """Resolve a session by full id or unique id prefix."""
    sessions = controller.repo.list_sessions(controller.user_id)
    exact = [s for s in sessions if s.id == ref]
    if exact:
        return exact[0]
    matches = [s for s in sessions if s.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def find_message(controller: ChatController, ref: str) -> Message | None:
    """Resolve a message of the loaded session by id, token, or unique id prefix."""
    message = controller.view.find(ref)
    if message is not None:
        return message
    matches = [m for m in controller.view.messages if m.id and m.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def short_id(value: str | None) -> str:
    return value[:8] if value else "-"
