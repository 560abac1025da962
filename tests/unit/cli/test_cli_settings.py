"""Tests for documind settings commands."""

from __future__ import annotations

import stat

from typer.testing import CliRunner

from documind.cli.main import app
from documind.rag.llm_client import get_backend
from documind.settings import load_settings

runner = CliRunner()


def test_set_key_with_option(isolated_home) -> None:
    result = runner.invoke(app, ["settings", "set-key", "--key", "AIza-secret-9876"])
    assert result.exit_code == 0, result.output
    assert "9876" in result.output
    assert "AIza-secret" not in result.output

    path = isolated_home / "settings.yaml"
    assert load_settings(path).api_key == "AIza-secret-9876"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_set_key_prompts_when_omitted(isolated_home) -> None:
    result = runner.invoke(app, ["settings", "set-key"], input="prompted-key\n")
    assert result.exit_code == 0, result.output
    assert load_settings(isolated_home / "settings.yaml").api_key == "prompted-key"


def test_set_key_empty_exits_1() -> None:
    result = runner.invoke(app, ["settings", "set-key", "--key", "   "])
    assert result.exit_code == 1


def test_set_key_replaces_cached_backend(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    assert get_backend("gemini/x").api_key == "env-key"
    runner.invoke(app, ["settings", "set-key", "--key", "stored-key"])
    assert get_backend("gemini/x").api_key == "stored-key"


def test_show_without_key() -> None:
    result = runner.invoke(app, ["settings", "show"])
    assert result.exit_code == 0
    assert "No API key configured" in result.output


def test_show_masks_stored_key() -> None:
    runner.invoke(app, ["settings", "set-key", "--key", "abcdefgh1234"])
    result = runner.invoke(app, ["settings", "show"])
    assert result.exit_code == 0
    assert "********1234" in result.output
    assert "settings file" in result.output
    assert "gemini" in result.output


def test_show_env_key(api_key) -> None:
    result = runner.invoke(app, ["settings", "show"])
    assert result.exit_code == 0
    assert "$GEMINI_API_KEY" in result.output
    assert api_key not in result.output


def test_clear(isolated_home) -> None:
    runner.invoke(app, ["settings", "set-key", "--key", "abcdefgh1234"])
    result = runner.invoke(app, ["settings", "clear", "--yes"])
    assert result.exit_code == 0
    assert not (isolated_home / "settings.yaml").exists()


def test_clear_nothing_stored() -> None:
    result = runner.invoke(app, ["settings", "clear", "--yes"])
    assert result.exit_code == 0
    assert "No stored API key" in result.output
