"""Entry point for the PySide6 overlay client."""

from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtGui import QAction, QKeySequence, QShortcut
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication, QMenu, QStyle, QSystemTrayIcon

from .config.store import load_settings
from .runtime.dispatcher import TOGGLE_COMMAND, BackgroundDispatcher
from .runtime.messaging import MessageBus
from .services.api import PopbarAPI
from .ui.overlay_window import OverlayWindow
from .utils.shortcuts import Shortcut, registered_shortcuts, start_global_hotkeys, validate_shortcut

logger = logging.getLogger(__name__)


def run() -> None:
    """Start the overlay and its background dispatcher."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    settings = load_settings()

    app = QApplication.instance() or QApplication([])
    app.setQuitOnLastWindowClosed(False)

    bus = MessageBus()
    api = PopbarAPI(settings)
    dispatcher = BackgroundDispatcher(bus, api)
    tab = bus.open_tab(url=Path.cwd().as_uri(), title="Popbar")

    window = OverlayWindow(settings, bus=bus, dispatcher=dispatcher, tab=tab)
    window.mount()

    bound: list[Shortcut] = []
    for shortcut in registered_shortcuts(settings.shortcuts):
        if not validate_shortcut(shortcut.sequence, [s.sequence for s in bound]):
            logger.warning("[popbar] shortcut %s for %s conflicts, skipped", shortcut.sequence, shortcut.name)
            continue
        bound.append(shortcut)

    hotkeys = start_global_hotkeys(bound, dispatcher.on_command)
    if hotkeys is None:
        # Application shortcuts only fire while a Popbar window is active.
        _bind_app_shortcuts(bound, dispatcher, window)

    tray = QSystemTrayIcon(app.style().standardIcon(QStyle.StandardPixmap.SP_ComputerIcon))
    tray.setToolTip("Popbar")
    menu = QMenu()
    toggle_action = QAction(f"Toggle Popbar ({settings.shortcuts.toggle_popbar})", menu)
    toggle_action.triggered.connect(lambda: dispatcher.on_command(TOGGLE_COMMAND))
    quit_action = QAction("Quit", menu)
    quit_action.triggered.connect(app.quit)
    menu.addAction(toggle_action)
    menu.addAction(quit_action)
    tray.setContextMenu(menu)
    tray.activated.connect(lambda _reason: dispatcher.on_command(TOGGLE_COMMAND))
    tray.show()

    def _report_backend(fut) -> None:
        if fut.exception() is None and not fut.result():
            logger.warning("[popbar] backend %s is not reachable", settings.server.base_url)

    dispatcher.submit(api.ping()).add_done_callback(_report_backend)

    try:
        app.exec()
    finally:
        if hotkeys is not None:
            hotkeys.stop()
        window.unmount()
        dispatcher.close()


def _bind_app_shortcuts(
    shortcuts: list[Shortcut],
    dispatcher: BackgroundDispatcher,
    window: OverlayWindow,
) -> list[QShortcut]:
    bound: list[QShortcut] = []
    for shortcut in shortcuts:
        qt_shortcut = QShortcut(QKeySequence(shortcut.sequence), window)
        qt_shortcut.setContext(Qt.ShortcutContext.ApplicationShortcut)
        qt_shortcut.activated.connect(lambda name=shortcut.name: dispatcher.on_command(name))
        bound.append(qt_shortcut)
    return bound
