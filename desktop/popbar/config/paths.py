"""Filesystem helpers for the overlay client."""

from __future__ import annotations

import os
from pathlib import Path


def popbar_home() -> Path:
    """Return the root folder holding the client's local data."""
    override = os.environ.get("POPBAR_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".popbar"


def config_dir() -> Path:
    """Directory storing local configuration and durable storage."""
    root = popbar_home() / "config"
    root.mkdir(parents=True, exist_ok=True)
    return root


def storage_path() -> Path:
    """JSON file backing the durable key-value storage."""
    return config_dir() / "storage.json"
