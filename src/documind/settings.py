"""Local settings store: the model credential and provider name.

The credential is kept apart from config.yaml (which must never contain keys)
in ``~/.documind/settings.yaml``, created owner-readable only. It is read at the
start of every backend call and whenever the CLI decides whether generation
features are enabled.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from documind.config import GLOBAL_CONFIG_DIR

log = logging.getLogger(__name__)

_SETTINGS_PATH: Path = GLOBAL_CONFIG_DIR / "settings.yaml"

DEFAULT_PROVIDER = "gemini"

# Environment fallbacks, checked in order when the store holds no key.
_ENV_KEYS: tuple[str, ...] = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


@dataclass
class Settings:
    api_key: str = ""
    provider: str = DEFAULT_PROVIDER


def _path(settings_path: Path | None) -> Path:
    return settings_path if settings_path is not None else _SETTINGS_PATH


def load_settings(settings_path: Path | None = None) -> Settings:
    """Return the stored settings, or defaults if the store does not exist."""
    path = _path(settings_path)
    if not path.exists():
        return Settings()
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        log.warning("Ignoring malformed settings file %s", path)
        return Settings()
    return Settings(
        api_key=str(raw.get("api_key") or "").strip(),
        provider=str(raw.get("provider") or DEFAULT_PROVIDER),
    )


def save_settings(settings: Settings, settings_path: Path | None = None) -> Path:
    """Persist *settings* (directory 0o700, file 0o600). Returns the file path."""
    path = _path(settings_path)
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    data = {"api_key": settings.api_key.strip(), "provider": settings.provider}
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    path.chmod(0o600)
    return path


def clear_settings(settings_path: Path | None = None) -> bool:
    """Delete the settings file. Returns True if a file was removed."""
    path = _path(settings_path)
    if path.exists():
        path.unlink()
        return True
    return False


def resolve_api_key(settings_path: Path | None = None) -> str | None:
    """Return the active credential: settings store first, then environment."""
    stored = load_settings(settings_path).api_key
    if stored:
        return stored
    for env_var in _ENV_KEYS:
        if value := os.environ.get(env_var):
            return value
    return None


def has_api_key(settings_path: Path | None = None) -> bool:
    return resolve_api_key(settings_path) is not None


def mask_key(key: str) -> str:
    """Return *key* with everything but the last four characters hidden."""
    if len(key) <= 4:
        return "*" * len(key)
    return "*" * (len(key) - 4) + key[-4:]
