"""Frameless always-on-top window rendering the overlay panel."""

from __future__ import annotations

from typing import Any, Callable, Optional

from PySide6.QtCore import Q_ARG, QEvent, QMetaObject, QObject, QPointF, Qt, QUrl, Slot
from PySide6.QtGui import QDesktopServices, QGuiApplication
from PySide6.QtWidgets import (
    QApplication,
    QButtonGroup,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from ..config.settings import AppSettings
from ..runtime.dispatcher import BackgroundDispatcher, CheckoutCallback
from ..runtime.messaging import MessageBus, MessageSender, Tab
from ..services.storage import LocalStorage
from ..state.geometry import Viewport
from ..state.panel import Mode, OverlayPanel
from ..terminal.page import PageContext

_BUTTON_INDEX = {
    Qt.MouseButton.LeftButton: 0,
    Qt.MouseButton.MiddleButton: 1,
    Qt.MouseButton.RightButton: 2,
}


def _button_index(button: Qt.MouseButton) -> int:
    return _BUTTON_INDEX.get(button, 3)


class _HeaderBar(QFrame):
    """Header area; presses outside its buttons start a drag."""

    def __init__(self, window: "OverlayWindow") -> None:
        super().__init__(window)
        self._window = window
        self.setObjectName("popbarHeader")

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        child = self.childAt(event.position().toPoint())
        on_control = isinstance(child, QPushButton)
        x, y = self._window.to_viewport(event.globalPosition())
        if self._window.panel.press_header(x, y, _button_index(event.button()), on_control=on_control):
            event.accept()
            return
        super().mousePressEvent(event)


class _ResizeHandle(QWidget):
    """Bottom-right grip starting a resize."""

    def __init__(self, window: "OverlayWindow") -> None:
        super().__init__(window)
        self._window = window
        self.setObjectName("popbarResizeHandle")
        self.setFixedSize(14, 14)
        self.setCursor(Qt.CursorShape.SizeFDiagCursor)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        x, y = self._window.to_viewport(event.globalPosition())
        if self._window.panel.press_resize_handle(x, y, _button_index(event.button())):
            event.accept()
            return
        super().mousePressEvent(event)


class _PointerTracker(QObject):
    """Application-wide filter feeding pointer moves/releases to the panel."""

    def __init__(self, window: "OverlayWindow") -> None:
        super().__init__(window)
        self._window = window

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:  # type: ignore[override]
        panel = self._window.panel
        kind = event.type()
        if kind == QEvent.Type.MouseMove and (panel.dragging or panel.resizing):
            x, y = self._window.to_viewport(event.globalPosition())  # type: ignore[attr-defined]
            panel.pointer_move(x, y)
        elif kind == QEvent.Type.MouseButtonRelease:
            panel.pointer_release()
        return False


class OverlayWindow(QWidget):
    """Qt rendering of :class:`OverlayPanel` hosted in one tab."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        bus: MessageBus,
        dispatcher: BackgroundDispatcher,
        tab: Tab,
        storage: Optional[LocalStorage] = None,
    ) -> None:
        super().__init__(None)
        self.settings = settings
        self.bus = bus
        self.dispatcher = dispatcher
        self.tab = tab
        self.setWindowTitle("Popbar")
        self.setWindowFlags(
            Qt.WindowType.Tool
            | Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
        )

        page = PageContext(
            url=tab.url,
            title=tab.title,
            eval_enabled=settings.terminal.page_eval_enabled,
        )
        self.panel = OverlayPanel(
            page=page,
            storage=storage or LocalStorage(),
            send_runtime_message=self._send_runtime_message,
            start_checkout=self._start_checkout,
            open_url=self._open_url,
            viewport=self._viewport(),
            settings=settings.panel,
            on_change=self.refresh,
        )
        self._pointer_tracker = _PointerTracker(self)
        self._remove_tab_listener: Optional[Callable[[], None]] = None
        self._rendered_messages = -1
        self._rendered_entries = -1

        self._build_layout()
        self._apply_theme()
        self.panel.collapsed_height = self._header.sizeHint().height()

    # ------------------------------------------------------------------ #
    # UI construction
    # ------------------------------------------------------------------ #
    def _build_layout(self) -> None:
        self._header = _HeaderBar(self)
        header_layout = QHBoxLayout(self._header)
        header_layout.setContentsMargins(12, 8, 12, 8)
        header_layout.setSpacing(6)

        self._close_btn = self._traffic_light("close", self.panel.close)
        self._minimize_btn = self._traffic_light("minimize", self.panel.minimize)
        self._reset_btn = self._traffic_light("reset", self.panel.reset)
        for button in (self._close_btn, self._minimize_btn, self._reset_btn):
            header_layout.addWidget(button)
        header_layout.addStretch(1)

        self._mode_group = QButtonGroup(self)
        self._mode_group.setExclusive(True)
        self._mode_buttons: dict[Mode, QPushButton] = {}
        for mode, label in ((Mode.SEARCH, "Search"), (Mode.AI, "AI"), (Mode.TERMINAL, "Terminal")):
            button = QPushButton(label)
            button.setCheckable(True)
            button.setProperty("cssClass", "modeButton")
            button.clicked.connect(lambda _checked=False, m=mode: self.panel.set_mode(m))
            self._mode_group.addButton(button)
            self._mode_buttons[mode] = button
            header_layout.addWidget(button)

        self._body = QStackedWidget()
        self._search_page = QLabel("Press Enter to search the web.")
        self._search_page.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._body.addWidget(self._search_page)
        self._body.addWidget(self._build_chat_page())
        self._body.addWidget(self._build_terminal_page())

        self._input = QLineEdit()
        self._input.setObjectName("popbarInput")
        self._input.textChanged.connect(self.panel.set_query)
        self._input.returnPressed.connect(self.panel.submit)

        self._resize_handle = _ResizeHandle(self)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._header)
        layout.addWidget(self._body, 1)
        input_row = QHBoxLayout()
        input_row.setContentsMargins(12, 8, 12, 12)
        input_row.addWidget(self._input)
        layout.addLayout(input_row)

    def _traffic_light(self, name: str, handler: Callable[[], None]) -> QPushButton:
        button = QPushButton()
        button.setObjectName(f"trafficLight_{name}")
        button.setFixedSize(12, 12)
        button.setToolTip(name.capitalize())
        button.clicked.connect(handler)
        return button

    def _build_chat_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(6)

        header = QHBoxLayout()
        title = QLabel("Popbar AI")
        title.setObjectName("chatTitle")
        self._usage_label = QLabel("")
        self._usage_label.setObjectName("chatUsage")
        header.addWidget(title)
        header.addStretch(1)
        header.addWidget(self._usage_label)
        layout.addLayout(header)

        self._chat_list = QListWidget()
        self._chat_list.setWordWrap(True)
        self._chat_list.setSelectionMode(QListWidget.SelectionMode.NoSelection)
        layout.addWidget(self._chat_list, 1)

        self._chat_empty = QLabel("Ask a question to start a conversation.")
        self._status_label = QLabel("Thinking...")
        self._status_label.setObjectName("popbarStatus")
        self._error_label = QLabel("")
        self._error_label.setObjectName("popbarError")
        self._error_label.setWordWrap(True)
        layout.addWidget(self._chat_empty)
        layout.addWidget(self._status_label)
        layout.addWidget(self._error_label)

        footer = QHBoxLayout()
        self._upgrade_btn = QPushButton("Upgrade with Stripe")
        self._upgrade_btn.clicked.connect(self.panel.upgrade)
        self._premium_btn = QPushButton("Toggle premium (dev)")
        self._premium_btn.clicked.connect(self.panel.toggle_premium)
        footer.addWidget(self._upgrade_btn)
        footer.addWidget(self._premium_btn)
        footer.addStretch(1)
        layout.addLayout(footer)
        return page

    def _build_terminal_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.setContentsMargins(12, 8, 12, 8)
        self._terminal_list = QListWidget()
        self._terminal_list.setObjectName("popbarTerminal")
        self._terminal_list.setWordWrap(True)
        self._terminal_list.setSelectionMode(QListWidget.SelectionMode.NoSelection)
        self._terminal_empty = QLabel('Type "help" to see available commands.')
        layout.addWidget(self._terminal_empty)
        layout.addWidget(self._terminal_list, 1)
        return page

    def _apply_theme(self) -> None:
        self.setStyleSheet(
            """
            QWidget {
                background-color: #1c1c20;
                color: #f2f2f5;
                font-family: 'Segoe UI', 'Inter', sans-serif;
                font-size: 13px;
            }
            #popbarHeader { background-color: #26262b; }
            #trafficLight_close { background-color: #ff5f57; border-radius: 6px; }
            #trafficLight_minimize { background-color: #febc2e; border-radius: 6px; }
            #trafficLight_reset { background-color: #28c840; border-radius: 6px; }
            QPushButton[cssClass="modeButton"] {
                padding: 4px 10px;
                border-radius: 8px;
                background-color: transparent;
            }
            QPushButton[cssClass="modeButton"]:checked { background-color: #3a3a42; }
            #popbarInput {
                padding: 8px 10px;
                border-radius: 10px;
                background-color: #2d2d33;
            }
            #popbarError { color: #f87171; }
            #popbarStatus, #chatUsage { color: #a1a1aa; }
            #popbarTerminal { font-family: 'Consolas', 'Menlo', monospace; }
            """
        )

    # ------------------------------------------------------------------ #
    # Mount / unmount
    # ------------------------------------------------------------------ #
    def mount(self) -> None:
        """Start listening to the tab and tracking the pointer."""
        viewport = self._viewport()
        self.panel.set_viewport(viewport.width, viewport.height)
        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self._pointer_tracker)
        if self.tab.id is not None:
            self._remove_tab_listener = self.bus.add_tab_listener(self.tab.id, self._on_tab_message)
        self.panel.mount()

    def unmount(self) -> None:
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self._pointer_tracker)
        if self._remove_tab_listener is not None:
            self._remove_tab_listener()
            self._remove_tab_listener = None
        self.panel.unmount()

    # ------------------------------------------------------------------ #
    # Bridges to the dispatcher (replies come back on the Qt thread)
    # ------------------------------------------------------------------ #
    def _on_tab_message(self, message: Any, _sender: MessageSender, _send_response: Callable[[Any], None]) -> bool:
        QMetaObject.invokeMethod(
            self,
            "_apply_tab_message",
            Qt.QueuedConnection,
            Q_ARG(object, message),
        )
        return False

    @Slot(object)
    def _apply_tab_message(self, message: object) -> None:
        self.panel.handle_message(message, MessageSender(), lambda _: None)

    def _send_runtime_message(self, message: dict[str, Any], callback: Callable[[Any], None]) -> None:
        self.bus.send_runtime_message(
            message,
            lambda payload: self._deliver(callback, payload),
            sender=MessageSender(tab_id=self.tab.id),
        )

    def _start_checkout(self, on_done: CheckoutCallback) -> None:
        self.dispatcher.start_checkout(
            lambda url, error: self._deliver(lambda args: on_done(*args), (url, error))
        )

    def _deliver(self, callback: Callable[[Any], None], payload: Any) -> None:
        QMetaObject.invokeMethod(
            self,
            "_run_callback",
            Qt.QueuedConnection,
            Q_ARG(object, callback),
            Q_ARG(object, payload),
        )

    @Slot(object, object)
    def _run_callback(self, callback: object, payload: object) -> None:
        if callable(callback):
            callback(payload)

    @staticmethod
    def _open_url(url: str) -> None:
        QDesktopServices.openUrl(QUrl(url))

    # ------------------------------------------------------------------ #
    # Geometry helpers
    # ------------------------------------------------------------------ #
    def _available_geometry(self):
        screen = self.screen() or QGuiApplication.primaryScreen()
        return screen.availableGeometry()

    def _viewport(self) -> Viewport:
        area = self._available_geometry()
        return Viewport(area.width(), area.height())

    def to_viewport(self, point: QPointF) -> tuple[float, float]:
        """Convert a global pointer position to viewport coordinates."""
        area = self._available_geometry()
        return point.x() - area.x(), point.y() - area.y()

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #
    @Slot()
    def refresh(self) -> None:
        panel = self.panel
        if not panel.visible:
            self.hide()
            return

        area = self._available_geometry()
        geometry = panel.geometry
        height = panel.rendered_height
        self.setGeometry(
            int(area.x() + geometry.left),
            int(area.y() + geometry.top),
            int(geometry.width),
            int(height),
        )
        self._body.setVisible(not panel.collapsed)
        self._input.setVisible(not panel.collapsed)
        self._resize_handle.setVisible(not panel.collapsed)
        self._resize_handle.move(self.width() - self._resize_handle.width(), self.height() - self._resize_handle.height())

        self._mode_buttons[panel.mode].setChecked(True)
        self._body.setCurrentIndex(list(Mode).index(panel.mode))
        self._input.setPlaceholderText(panel.placeholder)
        if self._input.text() != panel.query:
            self._input.setText(panel.query)

        self._render_chat()
        self._render_terminal()

        if not self.isVisible():
            self.show()
            self.raise_()
            self.activateWindow()
            self._input.setFocus()

    def _render_chat(self) -> None:
        panel = self.panel
        if len(panel.messages) != self._rendered_messages:
            self._chat_list.clear()
            for message in panel.messages:
                who = "You" if message.role == "user" else "Popbar"
                item = QListWidgetItem(f"{who}\n{message.content}")
                if message.role == "user":
                    item.setTextAlignment(Qt.AlignmentFlag.AlignRight)
                self._chat_list.addItem(item)
            self._chat_list.scrollToBottom()
            self._rendered_messages = len(panel.messages)
        self._usage_label.setText(panel.usage_label)
        self._chat_empty.setVisible(not panel.messages and not panel.ai_loading and not panel.ai_error)
        self._status_label.setVisible(panel.ai_loading)
        self._error_label.setVisible(bool(panel.ai_error))
        self._error_label.setText(panel.ai_error or "")
        self._upgrade_btn.setVisible(not panel.usage.is_premium)
        self._premium_btn.setVisible(self.settings.panel.show_dev_premium_toggle)

    def _render_terminal(self) -> None:
        panel = self.panel
        history = panel.terminal_history
        if len(history) != self._rendered_entries:
            self._terminal_list.clear()
            for entry in history:
                self._terminal_list.addItem(QListWidgetItem(f"$ {entry.command}\n{entry.output}"))
            self._terminal_list.scrollToBottom()
            self._rendered_entries = len(history)
        self._terminal_empty.setVisible(not history)
        self._terminal_list.setVisible(bool(history))

    # ------------------------------------------------------------------ #
    # Qt event overrides
    # ------------------------------------------------------------------ #
    def closeEvent(self, event) -> None:  # type: ignore[override]
        # Closing the window hides the overlay; the process keeps running.
        event.ignore()
        self.panel.close()

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._resize_handle.move(self.width() - self._resize_handle.width(), self.height() - self._resize_handle.height())
