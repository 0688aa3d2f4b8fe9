"""Background dispatcher relaying hotkeys and AI requests."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import CancelledError as FutureCancelledError, Future
from typing import Any, Callable, Coroutine, Optional

from ..services.api import PopbarAPI
from ..services.errors import DeliveryError
from ..services.schemas import AI_CHAT, TOGGLE_POPBAR, AiChatResponse, ChatMessage
from .messaging import MessageBus, MessageSender, SendResponse

logger = logging.getLogger(__name__)

TOGGLE_COMMAND = "toggle_popbar"

CheckoutCallback = Callable[[Optional[str], Optional[str]], None]


class BackgroundDispatcher:
    """Process-wide listener living as long as the process.

    Network calls run on an asyncio loop owned by the dispatcher (on a daemon
    thread unless a loop is injected); replies are delivered through the
    callbacks handed over by the caller.
    """

    def __init__(
        self,
        bus: MessageBus,
        api: PopbarAPI,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.bus = bus
        self.api = api
        if loop is not None:
            self.loop = loop
            self._owns_loop = False
            self._loop_thread: Optional[threading.Thread] = None
        else:
            self.loop = asyncio.new_event_loop()
            self._owns_loop = True
            self._loop_thread = threading.Thread(target=self._run_loop, daemon=True)
            self._loop_thread.start()
        bus.add_runtime_listener(self.on_message)

    # ------------------------------------------------------------------ #
    # Hotkey relay
    # ------------------------------------------------------------------ #
    def on_command(self, command: str) -> None:
        """Handle a registered global command."""
        logger.info("[popbar] command received: %s", command)
        if command != TOGGLE_COMMAND:
            return
        tab = self.bus.query_active()
        if tab is None or tab.id is None:
            logger.warning("[popbar] no active tab to send %s", TOGGLE_POPBAR)
            return
        try:
            self.bus.send_message(tab.id, {"type": TOGGLE_POPBAR})
        except DeliveryError as exc:
            logger.warning("[popbar] failed to send %s: %s", TOGGLE_POPBAR, exc)
            return
        logger.info("[popbar] %s sent to tab %s", TOGGLE_POPBAR, tab.id)

    # ------------------------------------------------------------------ #
    # AI bridge
    # ------------------------------------------------------------------ #
    def on_message(self, message: Any, sender: MessageSender, send_response: SendResponse) -> bool:
        """Broker AI_CHAT requests; returns True while a reply is pending."""
        if not isinstance(message, dict) or message.get("type") != AI_CHAT:
            return False
        raw = message.get("conversation") or []
        conversation = [ChatMessage.from_payload(item) for item in raw if isinstance(item, dict)]
        future = self.submit(self._relay_chat(conversation))

        def _deliver(fut: Future) -> None:
            try:
                payload = fut.result()
            except (asyncio.CancelledError, FutureCancelledError):
                payload = AiChatResponse(success=False, error="AI request cancelled").to_payload()
            send_response(payload)

        future.add_done_callback(_deliver)
        return True

    async def _relay_chat(self, conversation: list[ChatMessage]) -> dict[str, Any]:
        try:
            reply = await self.api.send_chat(conversation)
        except Exception as exc:
            logger.warning("[popbar] AI relay failed: %s", exc)
            return AiChatResponse(success=False, error=str(exc)).to_payload()
        return AiChatResponse(success=True, message=reply).to_payload()

    # ------------------------------------------------------------------ #
    # Checkout
    # ------------------------------------------------------------------ #
    def start_checkout(self, on_done: CheckoutCallback) -> None:
        """Request a checkout URL; ``on_done(url, error)`` runs on completion."""
        future = self.submit(self.api.create_checkout_session())

        def _done(fut: Future) -> None:
            try:
                url = fut.result()
            except (asyncio.CancelledError, FutureCancelledError):
                on_done(None, "Checkout cancelled")
                return
            except Exception as exc:
                logger.warning("[popbar] checkout failed: %s", exc)
                on_done(None, str(exc))
                return
            on_done(url, None)

        future.add_done_callback(_done)

    # ------------------------------------------------------------------ #
    # Loop management
    # ------------------------------------------------------------------ #
    def submit(self, coroutine: Coroutine[Any, Any, Any]) -> Future:
        """Schedule ``coroutine`` on the dispatcher loop."""
        return asyncio.run_coroutine_threadsafe(coroutine, self.loop)

    def close(self) -> None:
        """Close the API client and stop the owned loop."""
        loop_alive = self._loop_thread is not None if self._owns_loop else self.loop.is_running()
        if loop_alive:
            try:
                self.submit(self.api.close()).result(timeout=2)
            except Exception as exc:  # pragma: no cover - best effort at exit
                logger.debug("[popbar] closing API client failed: %r", exc)
        if self._owns_loop and self._loop_thread:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._loop_thread.join(timeout=1)
            self._loop_thread = None

    def _run_loop(self) -> None:
        """Run the owned asyncio loop in a dedicated thread."""
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()
