"""documind history CLI commands — stored chat sessions.

Commands:
  documind history list                                  — sessions, newest first
  documind history show <session>                        — the transcript
  documind history rename <session> <title>
  documind history delete <session>
  documind history feedback <session> <message> positive|negative|none
  documind history confirm <session>                     — resume a pending source selection
  documind history regenerate <session> <message>        — re-run an answer
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from documind.chat.controller import ChatController
from documind.chat.messages import (
    CompletedAnswer,
    ErroredAnswer,
    Message,
    PendingSourceConfirmation,
    Sender,
)
from documind.cli.ask import StreamPrinter, confirm_and_answer, render_outcome
from documind.cli.common import (
    DEFAULT_DB,
    find_message,
    find_session,
    open_controller,
    short_id,
)
from documind.cli.errors import (
    err_message_not_found,
    err_no_api_key,
    err_no_pending_confirmation,
    err_session_not_found,
    err_write_failed,
)
from documind.db.repository import PersistenceError

console = Console()

history_app = typer.Typer(
    name="history",
    help="Browse and manage chat sessions.",
    add_completion=False,
)

_DbOption = Annotated[Path, typer.Option("--db", help="Path to .documind.db.")]
_SessionArg = Annotated[str, typer.Argument(help="Session id or unique id prefix.")]


class FeedbackChoice(str, Enum):
    positive = "positive"
    negative = "negative"
    none = "none"


def _load(controller: ChatController, ref: str) -> None:
    session = find_session(controller, ref)
    if session is None:
        console.print(err_session_not_found(ref))
        raise typer.Exit(1)
    controller.load_session(session.id)


def _message(controller: ChatController, ref: str) -> Message:
    message = find_message(controller, ref)
    if message is None:
        console.print(err_message_not_found(ref))
        raise typer.Exit(1)
    return message


@history_app.command("list")
def history_list_cmd(db: _DbOption = DEFAULT_DB) -> None:
    """List chat sessions, newest first."""
    with open_controller(db) as controller:
        sessions = controller.repo.list_sessions(controller.user_id)
        if not sessions:
            console.print("[yellow]No chat sessions yet.[/]\n  Run:  documind ask \"<question>\"")
            raise typer.Exit(0)

        table = Table(title="Chat Sessions", show_header=True, header_style="bold")
        table.add_column("Id", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Created")
        for s in sessions:
            table.add_row(short_id(s.id), escape(s.title), s.created_at or "")
        console.print(table)


@history_app.command("show")
def history_show_cmd(session: _SessionArg, db: _DbOption = DEFAULT_DB) -> None:
    """Print the transcript of a session."""
    with open_controller(db) as controller:
        _load(controller, session)
        console.print(f"[bold]{escape(controller.view.session_title)}[/]\n")
        for message in controller.view.messages:
            _print_message(message)


def _print_message(message: Message) -> None:
    label = {
        Sender.USER: "[bold cyan]You[/]",
        Sender.MODEL: "[bold magenta]Documind[/]",
        Sender.SYSTEM: "[bold yellow]System[/]",
    }[message.sender]
    console.print(f"{label}  [dim]{short_id(message.id)}[/]")

    if isinstance(message, PendingSourceConfirmation):
        console.print("  [yellow]Waiting for source confirmation:[/]")
        for url in message.candidates:
            console.print(f"    - {escape(url)}")
    elif isinstance(message, ErroredAnswer):
        console.print(f"  [red]{escape(message.text)}[/]")
    else:
        console.out(message.text, highlight=False)

    if isinstance(message, CompletedAnswer):
        if message.selection is not None:
            sources = ", ".join(message.selection.urls) or "(none)"
            console.print(f"  [dim]Sources: {escape(sources)}[/]")
        if message.feedback:
            marker = "👍" if message.feedback == "positive" else "👎"
            console.print(f"  [dim]Feedback: {marker}[/]")
    console.print()


@history_app.command("rename")
def history_rename_cmd(
    session: _SessionArg,
    title: Annotated[str, typer.Argument(help="New title.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Rename a session."""
    with open_controller(db) as controller:
        _load(controller, session)
        try:
            controller.rename_session(title)
        except PersistenceError as exc:
            console.print(err_write_failed("rename the session", str(exc)))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Renamed to: [bold]{escape(title)}[/]")


@history_app.command("delete")
def history_delete_cmd(
    session: _SessionArg,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Delete a session and its messages."""
    with open_controller(db) as controller:
        found = find_session(controller, session)
        if found is None:
            console.print(err_session_not_found(session))
            raise typer.Exit(1)
        if not yes and not typer.confirm(f"Delete session '{found.title}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        try:
            controller.delete_session(found.id)
        except PersistenceError as exc:
            console.print(err_write_failed("delete the session", str(exc)))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Deleted: {escape(found.title)}")


@history_app.command("feedback")
def history_feedback_cmd(
    session: _SessionArg,
    message: Annotated[str, typer.Argument(help="Message id or unique id prefix.")],
    value: Annotated[FeedbackChoice, typer.Argument(help="positive, negative or none.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Rate an answer (none clears the rating)."""
    with open_controller(db) as controller:
        _load(controller, session)
        target = _message(controller, message)
        feedback = None if value is FeedbackChoice.none else value.value
        try:
            controller.set_feedback(target.ref, feedback)
        except LookupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Feedback: {value.value}")


@history_app.command("confirm")
def history_confirm_cmd(
    session: _SessionArg,
    exclude: Annotated[
        list[int] | None,
        typer.Option("--exclude", "-x", help="Drop candidate URL number N (repeatable)."),
    ] = None,
    add_url: Annotated[
        list[str] | None,
        typer.Option("--add-url", "-a", help="Add a URL to the confirmed set (repeatable)."),
    ] = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Accept the candidate URLs without prompting.")
    ] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Resume the pending source selection of a session and answer it."""
    printer = StreamPrinter()
    with open_controller(db, on_update=printer) as controller:
        _load(controller, session)
        pending = controller.pending_confirmation()
        if pending is None:
            console.print(err_no_pending_confirmation())
            raise typer.Exit(0)
        if not controller.has_credential():
            console.print(err_no_api_key())
            raise typer.Exit(1)
        confirm_and_answer(
            controller, pending, exclude=exclude, add_urls=add_url, yes=yes, printer=printer
        )


@history_app.command("regenerate")
def history_regenerate_cmd(
    session: _SessionArg,
    message: Annotated[str, typer.Argument(help="Message id or unique id prefix.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Re-run an answer with its original question and sources."""
    printer = StreamPrinter()
    with open_controller(db, on_update=printer) as controller:
        _load(controller, session)
        target = _message(controller, message)
        if not controller.has_credential():
            console.print(err_no_api_key())
            raise typer.Exit(1)
        try:
            final = controller.regenerate(target.ref)
        except LookupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        if printer.printed == 0 and isinstance(final, CompletedAnswer):
            console.out(final.text, highlight=False)
        console.print()
        render_outcome(final)
