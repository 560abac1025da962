"""Documind configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCUMIND_MODEL, DOCUMIND_USER)
  3. Per-project documind.yaml  (next to .documind.db)
  4. Global ~/.documind/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Config files must never contain API keys; the credential lives in the local
settings store (see documind.settings) or in environment variables.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GLOBAL_CONFIG_DIR: Path = Path.home() / ".documind"
_GLOBAL_CONFIG_PATH: Path = GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "documind.yaml"

DEFAULT_MODEL: str = "gemini/gemini-2.5-flash"
DEFAULT_USER: str = "local"
MAX_URLS_PER_GROUP: int = 20

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match max_urls etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["generation", "knowledge_base", "user"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class GenerationCfg:
    """LLM generation configuration (documind.yaml: generation:)."""

    model: str = DEFAULT_MODEL


@dataclass
class KnowledgeBaseCfg:
    """URL group limits (documind.yaml: knowledge_base:).

    Attributes:
        max_urls: Maximum number of URLs a single group may hold.
        relevance_shortcut: Groups with this many URLs or fewer skip the
            relevant-URL identification call entirely.
    """

    max_urls: int = MAX_URLS_PER_GROUP
    relevance_shortcut: int = 3


@dataclass
class UserCfg:
    """Owner recorded on groups and sessions (documind.yaml: user:)."""

    id: str = DEFAULT_USER


@dataclass
class DocumindConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    generation: GenerationCfg = field(default_factory=GenerationCfg)
    knowledge_base: KnowledgeBaseCfg = field(default_factory=KnowledgeBaseCfg)
    user: UserCfg = field(default_factory=UserCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must not be stored in config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    documind settings set-key"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must be a YAML mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocumindConfig:
    """Build a *DocumindConfig* from a merged raw YAML dict."""
    cfg = DocumindConfig()

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(model=str(g.get("model", cfg.generation.model)))

    if "knowledge_base" in data:
        kb = data["knowledge_base"] or {}
        max_urls = int(kb.get("max_urls", cfg.knowledge_base.max_urls))
        if max_urls < 1:
            raise ConfigError(f"knowledge_base.max_urls must be >= 1, got {max_urls}")
        cfg.knowledge_base = KnowledgeBaseCfg(
            max_urls=max_urls,
            relevance_shortcut=int(
                kb.get("relevance_shortcut", cfg.knowledge_base.relevance_shortcut)
            ),
        )

    if "user" in data:
        u = data["user"] or {}
        cfg.user = UserCfg(id=str(u.get("id", cfg.user.id)))

    return cfg


def _apply_env_overrides(cfg: DocumindConfig) -> DocumindConfig:
    """Apply DOCUMIND_* environment variable overrides."""
    if model := os.environ.get("DOCUMIND_MODEL"):
        cfg.generation.model = model
    if user := os.environ.get("DOCUMIND_USER"):
        cfg.user.id = user
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocumindConfig:
    """Load and return a merged *DocumindConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *documind.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If any config file contains API-key-like fields or an
            invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Create ``~/.documind/config.yaml`` with defaults if it does not exist.

    Creates the parent directory with mode 0o700 and the file with mode 0o600.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Documind global configuration — model defaults only.\n"
            "# NEVER store API keys here — use:  documind settings set-key\n"
            "\n"
            "generation:\n"
            f"  model: {DEFAULT_MODEL}\n"
            "\n"
            "knowledge_base:\n"
            f"  max_urls: {MAX_URLS_PER_GROUP}\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
