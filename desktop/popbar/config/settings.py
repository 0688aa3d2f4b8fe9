"""Local configuration models for the overlay client."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ServerSettings:
    """Connection settings for the Popbar backend."""

    base_url: str = "http://localhost:4000"
    verify_ssl: bool = True


@dataclass(slots=True)
class ShortcutSettings:
    """Keyboard shortcuts for the client."""

    toggle_popbar: str = "Ctrl+Shift+S"


@dataclass(slots=True)
class PanelSettings:
    """Overlay behaviour and search target."""

    search_url: str = "https://www.google.com/search?q={query}"
    free_message_limit: int = 20
    show_dev_premium_toggle: bool = True


@dataclass(slots=True)
class TerminalSettings:
    """Terminal emulator switches."""

    page_eval_enabled: bool = True


@dataclass(slots=True)
class AppSettings:
    """Full set of settings for the overlay client."""

    server: ServerSettings = field(default_factory=ServerSettings)
    shortcuts: ShortcutSettings = field(default_factory=ShortcutSettings)
    panel: PanelSettings = field(default_factory=PanelSettings)
    terminal: TerminalSettings = field(default_factory=TerminalSettings)
