"""documind ask — one grounded question, end to end.

Flow:
  1. Analyze  — pick the candidate URLs of the active group for the question
                (groups of three URLs or fewer skip this step)
  2. Confirm  — review the candidates: exclude some, add others
  3. Answer   — stream the grounded answer, then show URL retrieval status

Usage:
  documind ask "How do I stream responses?"
  documind ask "What are the rate limits?" --group "Gemini Docs Overview" --yes
  documind ask "..." --session 3f2a --exclude 2 --add-url https://example.com/docs
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from documind.chat.controller import ChatController
from documind.chat.groups import is_valid_url
from documind.chat.messages import (
    CompletedAnswer,
    ErroredAnswer,
    Message,
    PendingSourceConfirmation,
    StreamingAnswer,
)
from documind.cli.common import DEFAULT_DB, find_session, open_controller, select_group, short_id
from documind.cli.errors import (
    err_answer_failed,
    err_no_api_key,
    err_no_urls,
    err_session_not_found,
)

console = Console()


class StreamPrinter:
    """on_update hook: prints only the new tail of a streaming answer."""

    def __init__(self) -> None:
        self.printed = 0

    def __call__(self, message: Message) -> None:
        if not isinstance(message, StreamingAnswer):
            return
        text = message.partial_text
        if len(text) < self.printed:
            self.printed = 0
        if len(text) > self.printed:
            console.out(text[self.printed :], end="", highlight=False)
            self.printed = len(text)


def ask_cmd(
    question: Annotated[str, typer.Argument(help="The question to ask about the docs.")],
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="URL group name or id (default: first group)."),
    ] = None,
    session: Annotated[
        str | None,
        typer.Option("--session", "-s", help="Continue a chat session (id or id prefix)."),
    ] = None,
    exclude: Annotated[
        list[int] | None,
        typer.Option("--exclude", "-x", help="Drop candidate URL number N (repeatable)."),
    ] = None,
    add_url: Annotated[
        list[str] | None,
        typer.Option("--add-url", "-a", help="Add a URL to the confirmed set (repeatable)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Accept the candidate URLs without prompting."),
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .documind.db.")] = DEFAULT_DB,
) -> None:
    """Ask a question grounded on the URLs of a group."""
    printer = StreamPrinter()
    with open_controller(db, on_update=printer) as controller:
        active = select_group(controller, group)

        if session is not None:
            found = find_session(controller, session)
            if found is None:
                console.print(err_session_not_found(session))
                raise typer.Exit(1)
            controller.load_session(found.id)
        else:
            controller.new_chat()

        if not controller.has_credential():
            console.print(err_no_api_key())
            raise typer.Exit(1)
        if not controller.view.active_urls:
            console.print(err_no_urls(active.name if active else None))
            raise typer.Exit(1)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Analyzing your query and finding relevant documentation…", total=None)
            result = controller.send(question)

        if isinstance(result, ErroredAnswer):
            console.print(err_answer_failed(result.text))
            raise typer.Exit(1)
        if not isinstance(result, PendingSourceConfirmation):
            console.print("[yellow]Nothing sent.[/]")
            raise typer.Exit(1)

        console.print(
            f"  [dim]Session {short_id(controller.view.session_id)} — "
            f"{escape(controller.view.session_title)}[/]"
        )
        confirm_and_answer(controller, result, exclude=exclude, add_urls=add_url, yes=yes,
                           printer=printer)


# ------------------------------------------------------------------
# Shared with `documind history confirm`
# ------------------------------------------------------------------


def choose_sources(
    candidates: list[str],
    *,
    exclude: list[int] | None = None,
    add_urls: list[str] | None = None,
    yes: bool = False,
) -> list[str]:
    """Apply --exclude/--add-url, then (unless *yes*) let the user edit the set."""
    excluded = set(exclude or [])
    selected = [u for i, u in enumerate(candidates, start=1) if i not in excluded]
    for url in add_urls or []:
        if url not in selected:
            selected.append(url)

    if yes:
        return selected

    _print_candidates(selected)
    raw = typer.prompt(
        "Exclude which numbers? (comma separated, empty keeps all)",
        default="",
        show_default=False,
    )
    drop = {int(p) for p in raw.replace(" ", "").split(",") if p.isdigit()}
    selected = [u for i, u in enumerate(selected, start=1) if i not in drop]

    while True:
        extra = typer.prompt("Add a URL (empty to finish)", default="", show_default=False).strip()
        if not extra:
            break
        if not is_valid_url(extra):
            console.print("  [red]Invalid URL format. Please include http:// or https://[/]")
            continue
        if extra not in selected:
            selected.append(extra)
    return selected


def confirm_and_answer(
    controller: ChatController,
    pending: PendingSourceConfirmation,
    *,
    exclude: list[int] | None = None,
    add_urls: list[str] | None = None,
    yes: bool = False,
    printer: StreamPrinter | None = None,
) -> None:
    console.print(f"\n[bold]Sources for:[/] {escape(pending.query)}")
    selected = choose_sources(pending.candidates, exclude=exclude, add_urls=add_urls, yes=yes)
    if yes:
        _print_candidates(selected)
    if not selected:
        console.print("  [yellow]No sources selected — answering without URL context.[/]")

    console.print()
    final = controller.confirm_sources(pending.ref, selected)
    if printer is None or printer.printed == 0:
        if isinstance(final, CompletedAnswer):
            console.out(final.text, highlight=False)
    console.print()
    render_outcome(final)


def render_outcome(final: Message | None) -> None:
    """Print retrieval status and the id to use for feedback, or the error."""
    if isinstance(final, ErroredAnswer):
        console.print(err_answer_failed(final.text))
        raise typer.Exit(1)
    if not isinstance(final, CompletedAnswer):
        return
    if final.url_context:
        table = Table(title="URL retrieval", show_header=True, header_style="bold")
        table.add_column("URL")
        table.add_column("Status")
        for item in final.url_context:
            ok = item.url_retrieval_status.endswith("SUCCESS")
            colour = "green" if ok else "yellow"
            table.add_row(
                escape(item.retrieved_url), f"[{colour}]{escape(item.url_retrieval_status)}[/]"
            )
        console.print(table)
    console.print(
        f"\n  [dim]Message {short_id(final.id)} — rate it with: "
        f"documind history feedback <session> {short_id(final.id)} positive|negative[/]"
    )


def _print_candidates(urls: list[str]) -> None:
    if not urls:
        console.print("  [dim](no candidate URLs)[/]")
    for i, url in enumerate(urls, start=1):
        console.print(f"  [bold]{i}.[/] {escape(url)}")
