"""In-process message bus between the dispatcher and overlay tabs."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..services.errors import DeliveryError


@dataclass(slots=True)
class Tab:
    """A browsing context able to host an overlay."""

    id: Optional[int]
    url: str = ""
    title: str = ""


@dataclass(slots=True, frozen=True)
class MessageSender:
    """Origin of a runtime message."""

    tab_id: Optional[int] = None


SendResponse = Callable[[Any], None]
# Listeners return True to keep the response channel open past the call.
Listener = Callable[[Any, MessageSender, SendResponse], bool]


class MessageBus:
    """Routes tagged messages to tabs and to the runtime listeners."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._tabs: dict[int, Tab] = {}
        self._tab_listeners: dict[int, list[Listener]] = {}
        self._runtime_listeners: list[Listener] = []
        self._active_tab_id: Optional[int] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Tabs
    # ------------------------------------------------------------------ #
    def open_tab(self, *, url: str = "", title: str = "", activate: bool = True) -> Tab:
        with self._lock:
            tab = Tab(id=next(self._ids), url=url, title=title)
            self._tabs[tab.id] = tab
            if activate:
                self._active_tab_id = tab.id
            return tab

    def activate(self, tab_id: int) -> None:
        with self._lock:
            if tab_id not in self._tabs:
                raise KeyError(tab_id)
            self._active_tab_id = tab_id

    def close_tab(self, tab_id: int) -> None:
        with self._lock:
            self._tabs.pop(tab_id, None)
            self._tab_listeners.pop(tab_id, None)
            if self._active_tab_id == tab_id:
                self._active_tab_id = None

    def query_active(self) -> Optional[Tab]:
        with self._lock:
            if self._active_tab_id is None:
                return None
            return self._tabs.get(self._active_tab_id)

    def add_tab_listener(self, tab_id: int, listener: Listener) -> Callable[[], None]:
        """Attach a listener to a tab; returns a callable detaching it."""
        with self._lock:
            self._tab_listeners.setdefault(tab_id, []).append(listener)

        def _remove() -> None:
            with self._lock:
                listeners = self._tab_listeners.get(tab_id, [])
                if listener in listeners:
                    listeners.remove(listener)

        return _remove

    def send_message(self, tab_id: int, message: Any) -> None:
        """Deliver ``message`` to every listener of ``tab_id``."""
        with self._lock:
            listeners = list(self._tab_listeners.get(tab_id, []))
        if not listeners:
            raise DeliveryError("Could not establish connection. Receiving end does not exist.")
        sender = MessageSender(tab_id=None)
        for listener in listeners:
            listener(message, sender, _discard)

    # ------------------------------------------------------------------ #
    # Runtime (overlay -> dispatcher)
    # ------------------------------------------------------------------ #
    def add_runtime_listener(self, listener: Listener) -> None:
        with self._lock:
            self._runtime_listeners.append(listener)

    def send_runtime_message(
        self,
        message: Any,
        callback: SendResponse,
        *,
        sender: Optional[MessageSender] = None,
    ) -> None:
        """Send ``message`` to the runtime listeners.

        ``callback`` runs exactly once: with the first response, or with None
        when no listener answers nor keeps the channel open.
        """
        with self._lock:
            listeners = list(self._runtime_listeners)
        claim = threading.Lock()

        def _respond(payload: Any) -> None:
            # First caller wins; later responses are dropped.
            if not claim.acquire(blocking=False):
                return
            callback(payload)

        kept_open = False
        for listener in listeners:
            if listener(message, sender or MessageSender(), _respond):
                kept_open = True
        if not kept_open:
            _respond(None)


def _discard(_: Any) -> None:
    return None
