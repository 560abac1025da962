"""documind init — set up a project directory.

Creates:
  .documind.db             — chat sessions + URL groups, seeded with the default groups
  ~/.documind/config.yaml  — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from documind.chat.groups import GroupManager
from documind.chat.view_model import ChatViewModel
from documind.config import ConfigError, ensure_global_config, load_config
from documind.db.connection import Database
from documind.db.repository import Repository
from documind.db.schema import initialize
from documind.settings import has_api_key

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Initialize a Documind project database."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    db_path = project_dir / ".documind.db"

    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {escape(str(db_path))} already exists.")
        if not typer.confirm("Re-initialize? Existing data is preserved.", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    cfg_path = ensure_global_config()
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/] {escape(str(exc))}")
        raise typer.Exit(1)

    console.print(f"\n[bold]Creating project in {escape(str(project_dir))} …[/]\n")
    with Database(db_path) as conn:
        initialize(conn)
        groups = GroupManager(
            Repository(conn),
            ChatViewModel(),
            cfg.user.id,
            max_urls=cfg.knowledge_base.max_urls,
        ).load()
    console.print("  [green]✓[/] .documind.db")
    for group in groups:
        console.print(f"  [green]✓[/] group: {escape(group.name)}  ({len(group.urls)} URLs)")
    console.print(f"  [green]✓[/] {escape(str(cfg_path))} (global config)")

    console.print("\n[bold green]✓ Documind initialized.[/]")
    console.print("\nNext steps:")
    if not has_api_key():
        console.print("  1. documind settings set-key              (store your Gemini API key)")
    else:
        console.print("  1. [dim]API key found[/]")
    console.print("  2. documind groups list                   (review the URL groups)")
    console.print('  3. documind ask "<question>"              (ask about the docs)')
