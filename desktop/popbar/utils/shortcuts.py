"""Global shortcut helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from ..config.settings import ShortcutSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Shortcut:
    """Keyboard shortcut bound to a named command."""

    name: str
    sequence: str
    description: str = ""


def validate_shortcut(sequence: str, existing: Iterable[str]) -> bool:
    """Return True when the shortcut does not conflict with existing ones."""
    normalized = sequence.strip().lower()
    if not normalized:
        return False
    return normalized not in (s.strip().lower() for s in existing)


def registered_shortcuts(settings: ShortcutSettings) -> list[Shortcut]:
    """Commands exposed through a global hotkey."""
    return [
        Shortcut(
            name="toggle_popbar",
            sequence=settings.toggle_popbar,
            description="Toggle the Popbar overlay",
        ),
    ]


_MODIFIERS = {
    "ctrl": "<ctrl>",
    "control": "<ctrl>",
    "shift": "<shift>",
    "alt": "<alt>",
    "meta": "<cmd>",
    "cmd": "<cmd>",
    "win": "<cmd>",
}


def to_global_hotkey(sequence: str) -> str:
    """Convert a Qt-style sequence (``Ctrl+Shift+S``) to pynput's hotkey format."""
    parts = [part.strip().lower() for part in sequence.split("+") if part.strip()]
    if not parts:
        raise ValueError("empty shortcut")
    keys: list[str] = []
    for part in parts:
        if part in _MODIFIERS:
            keys.append(_MODIFIERS[part])
        elif len(part) == 1:
            keys.append(part)
        else:
            keys.append(f"<{part}>")
    return "+".join(keys)


def start_global_hotkeys(
    shortcuts: Iterable[Shortcut],
    on_command: Callable[[str], None],
    *,
    factory: Optional[Callable[[dict[str, Callable[[], None]]], Any]] = None,
) -> Optional[Any]:
    """Register system-wide hotkeys calling ``on_command(name)``.

    Callbacks run on the listener thread. Returns the started listener, or
    None when there is nothing to bind or the platform refuses the hook.
    """
    mapping = {
        to_global_hotkey(shortcut.sequence): (lambda name=shortcut.name: on_command(name))
        for shortcut in shortcuts
    }
    if not mapping:
        return None
    try:
        if factory is None:
            from pynput.keyboard import GlobalHotKeys

            factory = GlobalHotKeys
        listener = factory(mapping)
        listener.start()
    except Exception as exc:
        logger.warning("[popbar] global hotkeys unavailable (%s), using application shortcuts", exc)
        return None
    logger.info("[popbar] global hotkeys registered: %s", ", ".join(mapping))
    return listener
