"""Tests for the local settings store."""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from documind.log import configure_logging
from documind.settings import (
    Settings,
    clear_settings,
    has_api_key,
    load_settings,
    mask_key,
    resolve_api_key,
    save_settings,
)


def test_load_missing_returns_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "settings.yaml")
    assert settings == Settings(api_key="", provider="gemini")


def test_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "dir" / "settings.yaml"
    save_settings(Settings(api_key="  key-123  ", provider="gemini"), path)
    assert load_settings(path).api_key == "key-123"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_malformed_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_clear(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    save_settings(Settings(api_key="k"), path)
    assert clear_settings(path) is True
    assert clear_settings(path) is False


def test_resolve_prefers_store_over_env(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "settings.yaml"
    monkeypatch.setenv("GEMINI_API_KEY", "env")
    assert resolve_api_key(path) == "env"
    save_settings(Settings(api_key="stored"), path)
    assert resolve_api_key(path) == "stored"


def test_resolve_falls_back_to_google_key(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_API_KEY", "google")
    assert resolve_api_key(tmp_path / "settings.yaml") == "google"


def test_has_api_key(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    assert has_api_key(path) is False
    save_settings(Settings(api_key="k"), path)
    assert has_api_key(path) is True


def test_mask_key() -> None:
    assert mask_key("abcdefgh1234") == "********1234"
    assert mask_key("abc") == "***"


def test_configure_logging_is_idempotent() -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        configure_logging()
        configure_logging(verbose=True)
        added = [h for h in root.handlers if h not in before]
        assert len(added) <= 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("LiteLLM").level == logging.WARNING
    finally:
        root.setLevel(level)
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
