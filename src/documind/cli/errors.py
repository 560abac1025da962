"""Documind rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Interpolated names, paths and backend messages are passed through
rich.markup.escape so brackets in them print literally.

Usage:
    from documind.cli.errors import err_no_api_key
    console.print(err_no_api_key())
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key() -> str:
    """No credential in the settings store or the environment."""
    return (
        "[red]Error:[/] No API key configured.\n"
        "  Run:  documind settings set-key\n"
        "  or:   export GEMINI_API_KEY=..."
    )


def err_generation(message: str) -> str:
    """A backend call failed (invalid key, quota, other)."""
    return f"[red]Error:[/] {escape(message)}"


def err_no_db(db_path: str = ".documind.db") -> str:
    """No .documind.db found."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  documind init"
    )


def err_group_not_found(name: str, available: list[str]) -> str:
    available_list = escape(", ".join(available)) if available else "(none)"
    return (
        f"[red]Error:[/] URL group '{escape(name)}' not found.\n"
        f"  Available groups: {available_list}\n"
        "  Run:  documind groups list"
    )


def err_no_urls(group_name: str | None) -> str:
    """The active group has no URLs to ground answers on."""
    if group_name is None:
        return (
            "[red]Error:[/] No URL group available.\n"
            "  Run:  documind groups create <name>"
        )
    name = escape(group_name)
    return (
        f"[red]Error:[/] Group '{name}' has no URLs.\n"
        f"  Run:  documind groups add-url \"{name}\" <url>"
    )


def err_session_not_found(ref: str) -> str:
    return (
        f"[red]Error:[/] Chat session '{escape(ref)}' not found or ambiguous.\n"
        "  Run:  documind history list"
    )


def err_message_not_found(ref: str) -> str:
    return (
        f"[red]Error:[/] Message '{escape(ref)}' not found in this session.\n"
        "  Run:  documind history show <session>"
    )


def err_no_pending_confirmation() -> str:
    return (
        "[yellow]Nothing to confirm:[/] this session has no pending source selection.\n"
        "  Ask a new question:  documind ask \"<question>\""
    )


def err_delete_failed(name: str, reason: str) -> str:
    """Destructive operation failed — surfaced, never swallowed."""
    return (
        f"[red]Error:[/] Failed to delete group '{escape(name)}': {escape(reason)}\n"
        "  Please try again."
    )


def err_config(message: str) -> str:
    return f"[red]Config error:[/] {escape(message)}"


def err_answer_failed(text: str) -> str:
    """A query turn ended in an error message (already prefixed with 'Error:')."""
    return (
        f"[red]{escape(text)}[/]\n"
        "  Fix the cause, then ask again or run:  documind history regenerate <session> <message>"
    )


def err_write_failed(action: str, reason: str) -> str:
    """A database write the user asked for did not go through."""
    return (
        f"[red]Error:[/] Could not {escape(action)}: {escape(reason)}\n"
        "  Another documind process may hold the database. Please try again."
    )
