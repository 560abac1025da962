"""Tests for documind rich error messages."""

from __future__ import annotations

import pytest
from rich.text import Text

from documind.cli.errors import (
    err_answer_failed,
    err_config,
    err_delete_failed,
    err_generation,
    err_group_not_found,
    err_message_not_found,
    err_no_api_key,
    err_no_db,
    err_no_pending_confirmation,
    err_no_urls,
    err_session_not_found,
    err_write_failed,
)


def _has_action(msg: str) -> bool:
    """Every error must contain an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "export ", "documind ", "try again"])


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key(),
        err_no_db(),
        err_group_not_found("Docs", ["A", "B"]),
        err_no_urls("Docs"),
        err_no_urls(None),
        err_session_not_found("3f2a"),
        err_message_not_found("9c1d"),
        err_no_pending_confirmation(),
        err_delete_failed("Docs", "database is locked"),
        err_answer_failed("Error: API quota exceeded."),
    ],
)
def test_errors_are_actionable(msg: str) -> None:
    assert _has_action(msg)


def test_err_no_api_key_mentions_both_sources() -> None:
    msg = err_no_api_key()
    assert "documind settings set-key" in msg
    assert "GEMINI_API_KEY" in msg


def test_err_no_db_contains_path() -> None:
    assert "/tmp/x/.documind.db" in err_no_db("/tmp/x/.documind.db")


def test_err_group_not_found_lists_available() -> None:
    msg = err_group_not_found("Docs", ["Gemini Docs Overview", "Model Capabilities"])
    assert "Gemini Docs Overview, Model Capabilities" in msg


def test_err_group_not_found_none_available() -> None:
    assert "(none)" in err_group_not_found("Docs", [])


def test_err_no_urls_names_group() -> None:
    assert 'documind groups add-url "Docs"' in err_no_urls("Docs")


def test_err_delete_failed_contains_reason() -> None:
    msg = err_delete_failed("Docs", "database is locked")
    assert "Docs" in msg
    assert "database is locked" in msg


def test_err_answer_failed_does_not_double_prefix() -> None:
    msg = err_answer_failed("Error: API quota exceeded.")
    assert msg.count("Error:") == 1


def test_err_generation_and_config_carry_message() -> None:
    assert "quota" in err_generation("quota")
    assert "bad value" in err_config("bad value")


def test_bracketed_text_survives_markup() -> None:
    msg = err_answer_failed("Error: bad [/contents]")
    assert "Error: bad [/contents]" in Text.from_markup(msg).plain
    assert "list[str]" in Text.from_markup(err_group_not_found("list[str]", ["a[/]"])).plain
    assert "a[/]" in Text.from_markup(err_group_not_found("x", ["a[/]"])).plain


def test_err_write_failed_names_action_and_reason() -> None:
    msg = err_write_failed("rename the session", "database is locked")
    plain = Text.from_markup(msg).plain
    assert "Could not rename the session: database is locked" in plain
    assert _has_action(msg)
