"""Overlay panel model: visibility, modes, submission and pointer tracking.

The model is toolkit agnostic. The Qt window renders it and forwards pointer
and keyboard events; tests drive it directly.
"""

from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import quote

from ..config.settings import PanelSettings
from ..services.errors import QuotaExceededError
from ..services.schemas import (
    AI_CHAT,
    TOGGLE_POPBAR,
    AiChatResponse,
    ChatMessage,
    TerminalEntry,
    conversation_payload,
)
from ..services.storage import LocalStorage, UsageState, load_usage, save_usage
from ..terminal.evaluator import CLEAR_COMMAND, run_terminal_command
from ..terminal.page import PageContext
from .geometry import (
    COLLAPSED_HEIGHT,
    PanelGeometry,
    Viewport,
    clamp_position,
    clamp_size,
    default_geometry,
)

logger = logging.getLogger(__name__)

PRIMARY_BUTTON = 0

RuntimeSend = Callable[[dict[str, Any], Callable[[Any], None]], None]
CheckoutDone = Callable[[Optional[str], Optional[str]], None]
CheckoutStart = Callable[[CheckoutDone], None]


class Mode(str, Enum):
    """Active panel mode."""

    SEARCH = "search"
    AI = "ai"
    TERMINAL = "terminal"


class Visibility(str, Enum):
    """Visibility state of the panel."""

    HIDDEN = "hidden"
    EXPANDED = "visible-expanded"
    COLLAPSED = "visible-collapsed"


PLACEHOLDERS = {
    Mode.SEARCH: "Search the web...",
    Mode.AI: "Ask Popbar anything...",
    Mode.TERMINAL: 'Enter terminal command (type "help" for commands)...',
}


@dataclass(slots=True)
class _DragState:
    offset_x: float
    offset_y: float


@dataclass(slots=True)
class _ResizeState:
    pointer_x: float
    pointer_y: float
    width: float
    height: float


class OverlayPanel:
    """Interactive state of one overlay instance."""

    def __init__(
        self,
        *,
        page: PageContext,
        storage: LocalStorage,
        send_runtime_message: RuntimeSend,
        start_checkout: Optional[CheckoutStart] = None,
        open_url: Optional[Callable[[str], Any]] = None,
        viewport: Optional[Viewport] = None,
        settings: Optional[PanelSettings] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.settings = settings or PanelSettings()
        self.page = page
        self.storage = storage
        self._send_runtime_message = send_runtime_message
        self._start_checkout = start_checkout
        self._open_url = open_url or webbrowser.open_new_tab
        self._on_change = on_change

        self.viewport = viewport or Viewport(1280, 800)
        self.visible = False
        self.collapsed = False
        self.mode = Mode.SEARCH
        self.query = ""
        self.ai_loading = False
        self.ai_error: Optional[str] = None
        self.terminal_history: list[TerminalEntry] = []
        self.messages: list[ChatMessage] = []
        self.geometry: PanelGeometry = default_geometry(self.viewport)
        self.collapsed_height: float = COLLAPSED_HEIGHT
        self.usage = UsageState()
        self.mounted = False

        self._drag: Optional[_DragState] = None
        self._resize: Optional[_ResizeState] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def mount(self) -> None:
        """Load the usage state and start tracking the pointer."""
        self.usage = load_usage(self.storage)
        self.mounted = True
        self._notify()

    def unmount(self) -> None:
        """Stop tracking the pointer; late replies are dropped from now on."""
        self.mounted = False
        self._drag = None
        self._resize = None

    def handle_message(self, message: Any, _sender: Any, _send_response: Callable[[Any], None]) -> bool:
        """Tab listener reacting to messages from the dispatcher."""
        if isinstance(message, dict) and message.get("type") == TOGGLE_POPBAR:
            self.toggle()
        return False

    # ------------------------------------------------------------------ #
    # Visibility
    # ------------------------------------------------------------------ #
    @property
    def visibility(self) -> Visibility:
        if not self.visible:
            return Visibility.HIDDEN
        return Visibility.COLLAPSED if self.collapsed else Visibility.EXPANDED

    def toggle(self) -> None:
        if self.visible:
            self.visible = False
        else:
            self.visible = True
            self.collapsed = False
        self._notify()

    def close(self) -> None:
        self.visible = False
        self._notify()

    def minimize(self) -> None:
        """Switch between expanded and collapsed."""
        if not self.visible:
            return
        self.collapsed = not self.collapsed
        self._notify()

    def reset(self) -> None:
        """Expand the panel and restore the default geometry."""
        if not self.visible:
            return
        self.collapsed = False
        self.geometry = default_geometry(self.viewport)
        self._notify()

    # ------------------------------------------------------------------ #
    # Modes and input
    # ------------------------------------------------------------------ #
    def set_mode(self, mode: Mode | str) -> None:
        self.mode = Mode(mode)
        self.ai_error = None
        self._notify()

    def set_query(self, text: str) -> None:
        self.query = text

    @property
    def placeholder(self) -> str:
        return PLACEHOLDERS[self.mode]

    @property
    def usage_label(self) -> str:
        tier = "Premium" if self.usage.is_premium else "Free"
        label = f"{tier} · {self.usage.usage_count}/{self.settings.free_message_limit}"
        return label if self.usage.is_premium else f"{label} (approx.)"

    def submit(self) -> None:
        """Handle the submit action for the current mode."""
        query = self.query
        if not query.strip():
            return
        if self.mode is Mode.TERMINAL:
            self._submit_terminal(query)
        elif self.mode is Mode.SEARCH:
            self._submit_search(query)
        else:
            self._submit_ai(query)
        self._notify()

    def _submit_search(self, query: str) -> None:
        url = self.settings.search_url.format(query=quote(query, safe="-_.!~*'()"))
        self._open_url(url)
        self.query = ""

    def _submit_terminal(self, query: str) -> None:
        if query.strip() == CLEAR_COMMAND:
            self.terminal_history = []
        else:
            entry = run_terminal_command(query, self.page)
            if entry.command:
                self.terminal_history.append(entry)
        self.query = ""

    def _check_quota(self) -> None:
        if not self.usage.is_premium and self.usage.usage_count >= self.settings.free_message_limit:
            raise QuotaExceededError()

    def _submit_ai(self, query: str) -> None:
        try:
            self._check_quota()
        except QuotaExceededError as exc:
            self.ai_error = str(exc)
            return

        self.messages.append(ChatMessage(role="user", content=query))
        conversation = list(self.messages)
        self.query = ""
        self.ai_loading = True
        self.ai_error = None
        self._notify()

        request = {"type": AI_CHAT, "conversation": conversation_payload(conversation)}
        try:
            self._send_runtime_message(request, self._on_ai_response)
        except Exception as exc:
            self._on_ai_response({"success": False, "error": str(exc)})

    def _on_ai_response(self, payload: Any) -> None:
        if not self.mounted:
            logger.debug("[popbar] AI reply dropped, panel unmounted")
            return
        response = AiChatResponse.from_payload(payload)
        if response.success and response.message is not None:
            self.messages.append(response.message)
            self.usage.usage_count += 1
            save_usage(self.storage, self.usage)
        else:
            self.ai_error = response.error or "Unknown AI error"
        self.ai_loading = False
        self._notify()

    # ------------------------------------------------------------------ #
    # Premium
    # ------------------------------------------------------------------ #
    def toggle_premium(self) -> None:
        """Debug affordance flipping the premium flag."""
        self.usage.is_premium = not self.usage.is_premium
        save_usage(self.storage, self.usage)
        self._notify()

    def upgrade(self) -> None:
        """Start a checkout session and open its URL."""
        if self._start_checkout is None:
            self._on_checkout_done(None, "Failed to start checkout")
            return
        try:
            self._start_checkout(self._on_checkout_done)
        except Exception as exc:
            self._on_checkout_done(None, str(exc))

    def _on_checkout_done(self, url: Optional[str], error: Optional[str]) -> None:
        if not self.mounted:
            return
        if error:
            self.ai_error = error
        elif url:
            self._open_url(url)
        self._notify()

    # ------------------------------------------------------------------ #
    # Pointer tracking
    # ------------------------------------------------------------------ #
    @property
    def dragging(self) -> bool:
        return self._drag is not None

    @property
    def resizing(self) -> bool:
        return self._resize is not None

    @property
    def rendered_height(self) -> float:
        """Height on screen: the header alone while collapsed."""
        return self.collapsed_height if self.collapsed else self.geometry.height

    def set_viewport(self, width: float, height: float) -> None:
        self.viewport = Viewport(width, height)

    def press_header(self, x: float, y: float, button: int = PRIMARY_BUTTON, *, on_control: bool = False) -> bool:
        """Start dragging unless the press hit a header control."""
        if button != PRIMARY_BUTTON or on_control:
            return False
        self._drag = _DragState(offset_x=x - self.geometry.left, offset_y=y - self.geometry.top)
        return True

    def press_resize_handle(self, x: float, y: float, button: int = PRIMARY_BUTTON) -> bool:
        if button != PRIMARY_BUTTON:
            return False
        self._drag = None
        self._resize = _ResizeState(
            pointer_x=x,
            pointer_y=y,
            width=self.geometry.width,
            height=self.geometry.height,
        )
        return True

    def pointer_move(self, x: float, y: float) -> None:
        if not self.mounted:
            return
        geometry = self.geometry
        if self._drag is not None:
            geometry.left, geometry.top = clamp_position(
                x - self._drag.offset_x,
                y - self._drag.offset_y,
                geometry.width,
                self.rendered_height,
                self.viewport,
            )
        elif self._resize is not None:
            start = self._resize
            geometry.width, geometry.height = clamp_size(
                start.width + (x - start.pointer_x),
                start.height + (y - start.pointer_y),
                self.viewport,
            )
        else:
            return
        self._notify()

    def pointer_release(self) -> None:
        self._drag = None
        self._resize = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
