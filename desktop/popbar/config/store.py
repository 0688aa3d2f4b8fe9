"""Persistence helpers for Popbar client settings."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from .paths import config_dir
from .settings import AppSettings, PanelSettings, ServerSettings, ShortcutSettings, TerminalSettings


def _settings_path() -> Path:
    """Path of the persisted settings file."""
    return config_dir() / "popbar_settings.json"


def load_settings() -> AppSettings:
    """Load settings from disk (defaults when missing)."""
    path = _settings_path()
    if not path.exists():
        return AppSettings()

    raw_text = path.read_text(encoding="utf-8").lstrip("\ufeff")
    data = json.loads(raw_text)

    return AppSettings(
        server=ServerSettings(**data.get("server", {})),
        shortcuts=ShortcutSettings(**data.get("shortcuts", {})),
        panel=PanelSettings(**data.get("panel", {})),
        terminal=TerminalSettings(**data.get("terminal", {})),
    )


def save_settings(settings: AppSettings) -> None:
    """Persist settings to disk."""
    path = _settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")
