"""documind suggest — starter questions for the URLs of a group."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from documind.cli.common import DEFAULT_DB, open_controller, select_group
from documind.cli.errors import err_no_api_key, err_no_urls
from documind.rag.generation import NO_URLS_SUGGESTION

console = Console()


def suggest_cmd(
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="URL group name or id (default: first group)."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .documind.db.")] = DEFAULT_DB,
) -> None:
    """Suggest up to four questions answerable from a group's URLs."""
    with open_controller(db) as controller:
        active = select_group(controller, group)
        if not controller.view.active_urls:
            console.print(f"[dim]{NO_URLS_SUGGESTION}[/]")
            console.print(err_no_urls(active.name if active else None))
            raise typer.Exit(0)
        if not controller.has_credential():
            console.print(err_no_api_key())
            raise typer.Exit(1)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Fetching suggestions…", total=None)
            suggestions = controller.refresh_suggestions()

        if not suggestions:
            console.print("[yellow]No suggestions available right now.[/]")
            raise typer.Exit(0)

        topic = escape(active.name) if active else "these docs"
        console.print(f"[bold]Try asking about {topic}:[/]")
        for i, text in enumerate(suggestions, start=1):
            console.print(f"  {i}. {escape(text)}")
