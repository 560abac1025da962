"""Tests for the documind config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from documind.config import (
    DEFAULT_MODEL,
    MAX_URLS_PER_GROUP,
    ConfigError,
    ensure_global_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")
    assert cfg.generation.model == DEFAULT_MODEL == "gemini/gemini-2.5-flash"
    assert cfg.knowledge_base.max_urls == MAX_URLS_PER_GROUP == 20
    assert cfg.knowledge_base.relevance_shortcut == 3
    assert cfg.user.id == "local"


def test_load_config_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("# nothing here\n", encoding="utf-8")
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == DEFAULT_MODEL


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"model": "gemini/gemini-2.5-pro"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == "gemini/gemini-2.5-pro"
    assert cfg.knowledge_base.max_urls == 20


def test_load_config_project_partial_override(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"knowledge_base": {"max_urls": 10, "relevance_shortcut": 5}})
    _write_yaml(tmp_path / "documind.yaml", {"knowledge_base": {"max_urls": 15}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.knowledge_base.max_urls == 15
    assert cfg.knowledge_base.relevance_shortcut == 5


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "documind.yaml", {"generation": {"model": "gemini/a"}, "user": {"id": "bob"}})
    monkeypatch.setenv("DOCUMIND_MODEL", "gemini/b")
    monkeypatch.setenv("DOCUMIND_USER", "alice")
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")
    assert cfg.generation.model == "gemini/b"
    assert cfg.user.id == "alice"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "apiKey", "gemini_token", "password", "credentials"])
def test_api_key_like_fields_rejected(tmp_path: Path, key: str) -> None:
    _write_yaml(tmp_path / "documind.yaml", {"generation": {key: "secret"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")


def test_api_key_in_global_rejected(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"api_key": "x"})
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_max_urls_must_be_positive(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "documind.yaml", {"knowledge_base": {"max_urls": 0}})
    with pytest.raises(ConfigError, match="max_urls"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")


def test_non_mapping_config_rejected(tmp_path: Path) -> None:
    (tmp_path / "documind.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")


def test_unknown_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "documind.yaml", {"retrieval": {"top_k": 5}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")
    assert any("retrieval" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".documind" / "config.yaml"
    path = ensure_global_config(target)
    assert path == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["generation"]["model"] == DEFAULT_MODEL
    assert "api_key" not in target.read_text(encoding="utf-8")


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("generation:\n  model: gemini/custom\n", encoding="utf-8")
    ensure_global_config(target)
    assert "gemini/custom" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(tmp_path / "config.yaml")
    cfg = load_config(project_dir=tmp_path, global_config_path=target)
    assert cfg.generation.model == DEFAULT_MODEL
