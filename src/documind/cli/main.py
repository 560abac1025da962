"""Documind CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from documind.cli.ask import ask_cmd
from documind.cli.groups import groups_app
from documind.cli.history import history_app
from documind.cli.init import init_cmd
from documind.cli.settings import settings_app
from documind.cli.suggest import suggest_cmd
from documind.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("documind")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"documind {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="documind",
    help=(
        "Documind — chat with documentation, grounded on the URLs you choose.\n\n"
        "  documind ask       Ask a question, confirm the sources, get a cited answer.\n"
        "  documind groups    Manage the URL groups answers are grounded on."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """Documind — documentation chat assistant."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ask")(ask_cmd)
app.command("suggest")(suggest_cmd)
app.add_typer(groups_app, name="groups")
app.add_typer(history_app, name="history")
app.add_typer(settings_app, name="settings")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Documind version."""
    typer.echo(f"documind {_installed_version()}")


if __name__ == "__main__":
    app()
