"""documind settings CLI commands — the model credential.

Commands:
  documind settings set-key     — store the Gemini API key (prompted, hidden)
  documind settings show        — masked key, its source, and the provider
  documind settings clear       — remove the stored key

The key is written to ~/.documind/settings.yaml (mode 0o600), never to a
config file. Changing it drops any cached backend handle so the next call
uses the new key.
"""

from __future__ import annotations

import os
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from documind.rag.llm_client import invalidate_backend
from documind.settings import (
    DEFAULT_PROVIDER,
    Settings,
    clear_settings,
    load_settings,
    mask_key,
    resolve_api_key,
    save_settings,
)

console = Console()

settings_app = typer.Typer(
    name="settings",
    help="Manage the API key used for generation.",
    add_completion=False,
)


@settings_app.command("set-key")
def settings_set_key_cmd(
    key: Annotated[
        str | None,
        typer.Option("--key", help="API key (prompted with hidden input if omitted)."),
    ] = None,
    provider: Annotated[
        str, typer.Option("--provider", help="Provider name.")
    ] = DEFAULT_PROVIDER,
) -> None:
    """Store the API key in the local settings file."""
    if key is None:
        key = typer.prompt("Gemini API key", hide_input=True)
    key = key.strip()
    if not key:
        console.print("[red]Error:[/] API key cannot be empty.")
        raise typer.Exit(1)

    path = save_settings(Settings(api_key=key, provider=provider))
    invalidate_backend()
    console.print(f"[green]✓[/] API key saved to {escape(str(path))}  ({mask_key(key)})")


@settings_app.command("show")
def settings_show_cmd() -> None:
    """Show the active API key (masked) and where it comes from."""
    stored = load_settings()
    active = resolve_api_key()
    if active is None:
        console.print("[yellow]No API key configured.[/]\n  Run:  documind settings set-key")
        raise typer.Exit(0)

    if stored.api_key:
        source = "settings file"
    else:
        source = next(
            (f"${var}" for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY") if os.environ.get(var)),
            "environment",
        )
    console.print(f"API key:   {mask_key(active)}  [dim]({source})[/]")
    console.print(f"Provider:  {escape(stored.provider)}")


@settings_app.command("clear")
def settings_clear_cmd(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Remove the stored API key."""
    if not yes and not typer.confirm("Remove the stored API key?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)
    removed = clear_settings()
    invalidate_backend()
    if removed:
        console.print("[green]✓[/] Stored API key removed.")
    else:
        console.print("[dim]No stored API key.[/]")
