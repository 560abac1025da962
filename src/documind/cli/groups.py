"""documind groups CLI commands.

Commands:
  documind groups list                      — all groups with URL counts
  documind groups show <group>              — the URLs of one group
  documind groups create <name>             — new group (optionally search for URLs)
  documind groups rename <group> <name>
  documind groups delete <group>            — group and all of its URLs
  documind groups add-url <group> <url>
  documind groups remove-url <group> <url>
  documind groups discover <group>          — web-search URLs and add the chosen ones
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
from documind.chat.groups import GroupError
from documind.cli.common import DEFAULT_DB, open_controller, require_group, short_id
from documind.cli.errors import (
    err_delete_failed,
    err_generation,
    err_no_api_key,
    err_write_failed,
)
from documind.db.repository import PersistenceError
from documind.rag.generation import discover_urls
from documind.rag.llm_client import MissingApiKeyError

console = Console()

groups_app = typer.Typer(
    name="groups",
    help="Manage URL groups (the documents answers are grounded on).",
    add_completion=False,
)

_DbOption = Annotated[Path, typer.Option("--db", help="Path to .documind.db.")]


@groups_app.command("list")
def groups_list_cmd(db: _DbOption = DEFAULT_DB) -> None:
    """List all URL groups."""
    with open_controller(db) as controller:
        groups = controller.view.groups
        if not groups:
            console.print("[yellow]No URL groups.[/]\n  Run:  documind groups create <name>")
            raise typer.Exit(0)

        table = Table(title="URL Groups", show_header=True, header_style="bold")
        table.add_column("Id", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("URLs", justify="right")
        for group in groups:
            table.add_row(
                short_id(group.id),
                escape(group.name),
                f"{len(group.urls)}/{controller.groups.max_urls}",
            )
        console.print(table)


@groups_app.command("show")
def groups_show_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Show the URLs of a group."""
    with open_controller(db) as controller:
        found = require_group(controller, group)
        console.print(f"[bold]{escape(found.name)}[/]  ({len(found.urls)} URLs)")
        for i, url in enumerate(found.urls, start=1):
            console.print(f"  {i}. {escape(url)}")


@groups_app.command("create")
def groups_create_cmd(
    name: Annotated[str, typer.Argument(help="Name of the new group.")],
    discover: Annotated[
        bool,
        typer.Option("--discover/--no-discover", help="Search the web for URLs on this topic."),
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Add all found URLs.")] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Create a new, empty URL group."""
    with open_controller(db) as controller:
        try:
            group = controller.groups.create_group(name)
        except GroupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Created group: [bold]{escape(group.name)}[/]")
        if discover:
            _discover_into(controller, group.name, yes=yes)


@groups_app.command("rename")
def groups_rename_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    new_name: Annotated[str, typer.Argument(help="New name.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Rename a URL group."""
    with open_controller(db) as controller:
        found = require_group(controller, group)
        try:
            controller.groups.rename_group(found.id, new_name)
        except GroupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        except PersistenceError as exc:
            console.print(err_write_failed(f"rename group '{found.name}'", str(exc)))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Renamed to: [bold]{escape(found.name)}[/]")


@groups_app.command("delete")
def groups_delete_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Delete a group and all its URLs."""
    with open_controller(db) as controller:
        found = require_group(controller, group)
        console.print(f"\nDelete group: [bold]{escape(found.name)}[/]  ({len(found.urls)} URLs)")
        if not yes:
            if not typer.confirm(
                "Are you sure you want to delete this group and all its URLs?", default=False
            ):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
        try:
            controller.groups.delete_group(found.id)
        except PersistenceError as exc:
            console.print(err_delete_failed(found.name, str(exc)))
            raise typer.Exit(1)

        console.print(f"[green]✓[/] Deleted: {escape(found.name)}")
        active = controller.view.active_group
        if active is not None:
            console.print(f"  Active group is now: [bold]{escape(active.name)}[/]")
        else:
            console.print("  [dim]No groups left.[/]")


@groups_app.command("add-url")
def groups_add_url_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    url: Annotated[str, typer.Argument(help="http(s) URL to add.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add a URL to a group."""
    with open_controller(db) as controller:
        require_group(controller, group)
        try:
            controller.groups.add_url(url)
        except GroupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Added: {escape(url.strip())}")


@groups_app.command("remove-url")
def groups_remove_url_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    url: Annotated[str, typer.Argument(help="URL to remove.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Remove a URL from a group."""
    with open_controller(db) as controller:
        require_group(controller, group)
        try:
            removed = controller.groups.remove_url(url)
        except GroupError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1)
        if not removed:
            console.print(f"[yellow]Not in group:[/] {escape(url)}")
            raise typer.Exit(0)
        console.print(f"[green]✓[/] Removed: {escape(url)}")


@groups_app.command("discover")
def groups_discover_cmd(
    group: Annotated[str, typer.Argument(help="Group name or id.")],
    topic: Annotated[
        str | None,
        typer.Option("--topic", "-t", help="Search topic (default: the group name)."),
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Add all found URLs.")] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Search the web for authoritative URLs and add the chosen ones to a group."""
    with open_controller(db) as controller:
        found = require_group(controller, group)
        _discover_into(controller, topic or found.name, yes=yes)


def _discover_into(controller: ChatController, topic: str, *, yes: bool) -> None:
    if not controller.has_credential():
        console.print(err_no_api_key())
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(f"Searching for sources on '{escape(topic)}'…", total=None)
        try:
            urls = discover_urls(
                topic,
                model=controller.config.generation.model,
                settings_path=controller.settings_path,
            )
        except MissingApiKeyError as exc:
            console.print(err_generation(str(exc)))
            raise typer.Exit(1)

    if not urls:
        console.print(f"  [yellow]No URLs found for '{escape(topic)}'.[/]")
        return

    console.print(f"\n[bold]Found {len(urls)} URLs for '{escape(topic)}':[/]")
    chosen: list[str] = []
    for i, url in enumerate(urls, start=1):
        if yes:
            console.print(f"  {i}. {escape(url)}")
            chosen.append(url)
        elif typer.confirm(f"  {i}. {url}  — add?", default=True):
            chosen.append(url)

    added = controller.groups.import_urls(chosen)
    target = controller.view.active_group
    name = escape(target.name) if target else "-"
    console.print(f"[green]✓[/] Added {len(added)} URL(s) to [bold]{name}[/]")
