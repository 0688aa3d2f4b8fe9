"""Popbar overlay client package."""

from __future__ import annotations

from typing import Any

__all__ = ["run"]


def run(*args: Any, **kwargs: Any) -> Any:
    """Entrypoint launching the overlay (lazy import keeps Qt optional)."""
    from .app import run as _run

    return _run(*args, **kwargs)
