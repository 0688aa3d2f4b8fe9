from __future__ import annotations

from typing import Any, Callable

import pytest

from desktop.popbar.services.storage import LocalStorage, UsageState, load_usage, save_usage
from desktop.popbar.state.geometry import EDGE_MARGIN, Viewport, default_geometry
from desktop.popbar.state.panel import Mode, OverlayPanel, Visibility
from desktop.popbar.terminal.page import PageContext


class FakeRuntime:
    """Collects AI_CHAT requests; replies are sent by the test."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.callbacks: list[Callable[[Any], None]] = []

    def __call__(self, message: dict[str, Any], callback: Callable[[Any], None]) -> None:
        self.requests.append(message)
        self.callbacks.append(callback)

    def reply(self, payload: Any) -> None:
        self.callbacks.pop(0)(payload)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def opened() -> list[str]:
    return []


@pytest.fixture
def panel(storage, runtime, opened) -> OverlayPanel:
    instance = OverlayPanel(
        page=PageContext(url="https://example.com", title="Example"),
        storage=storage,
        send_runtime_message=runtime,
        open_url=opened.append,
        viewport=Viewport(1280, 800),
    )
    instance.mount()
    instance.toggle()
    return instance


def _ask(panel: OverlayPanel, text: str) -> None:
    panel.set_mode(Mode.AI)
    panel.set_query(text)
    panel.submit()


# ---------------------------------------------------------------------- #
# Visibility state machine
# ---------------------------------------------------------------------- #
def test_initial_state_is_hidden(storage, runtime):
    instance = OverlayPanel(page=PageContext(), storage=storage, send_runtime_message=runtime)
    assert instance.visibility is Visibility.HIDDEN
    assert instance.mode is Mode.SEARCH


def test_toggle_message_switches_visibility(panel):
    assert panel.visibility is Visibility.EXPANDED
    panel.handle_message({"type": "TOGGLE_POPBAR"}, None, lambda _: None)
    assert panel.visibility is Visibility.HIDDEN
    panel.handle_message({"type": "OTHER"}, None, lambda _: None)
    assert panel.visibility is Visibility.HIDDEN


def test_minimize_restore_and_close(panel):
    panel.minimize()
    assert panel.visibility is Visibility.COLLAPSED
    panel.minimize()
    assert panel.visibility is Visibility.EXPANDED
    panel.minimize()
    panel.close()
    assert panel.visibility is Visibility.HIDDEN
    panel.toggle()
    assert panel.visibility is Visibility.EXPANDED


def test_reset_expands_and_restores_default_geometry(panel):
    panel.press_header(100, 300)
    panel.pointer_move(400, 500)
    panel.pointer_release()
    panel.minimize()
    panel.reset()
    assert panel.visibility is Visibility.EXPANDED
    assert panel.geometry == default_geometry(Viewport(1280, 800))


def test_default_geometry_values():
    geometry = default_geometry(Viewport(1280, 800))
    assert (geometry.left, geometry.top, geometry.width, geometry.height) == (24, 190, 420, 420)
    assert default_geometry(Viewport(1280, 300)).top == 24


# ---------------------------------------------------------------------- #
# Submission
# ---------------------------------------------------------------------- #
def test_blank_submission_is_ignored(panel, opened):
    panel.set_query("   ")
    panel.submit()
    assert opened == []
    assert panel.query == "   "


def test_search_opens_encoded_query(panel, opened):
    panel.set_query("cats & dogs?")
    panel.submit()
    assert opened == ["https://www.google.com/search?q=cats%20%26%20dogs%3F"]
    assert panel.query == ""


def test_terminal_appends_entries_and_clear_wipes_history(panel):
    panel.set_mode(Mode.TERMINAL)
    for line in ("echo hello world", "title", "nope"):
        panel.set_query(line)
        panel.submit()
    assert [entry.output for entry in panel.terminal_history] == [
        "hello world",
        "Example",
        "Unknown command: nope. Type 'help' for options.",
    ]
    panel.set_query("  clear ")
    panel.submit()
    assert panel.terminal_history == []
    assert panel.query == ""


def test_ai_success_appends_reply_and_counts_usage(panel, runtime, storage):
    _ask(panel, "hi")
    assert panel.ai_loading is True
    assert panel.query == ""
    assert runtime.requests == [
        {"type": "AI_CHAT", "conversation": [{"role": "user", "content": "hi"}]}
    ]

    runtime.reply({"success": True, "message": {"role": "assistant", "content": "hello"}})

    assert [(m.role, m.content) for m in panel.messages] == [("user", "hi"), ("assistant", "hello")]
    assert panel.usage.usage_count == 1
    assert panel.ai_loading is False
    assert panel.ai_error is None
    assert load_usage(storage).usage_count == 1


def test_ai_sends_full_conversation(panel, runtime):
    _ask(panel, "hi")
    runtime.reply({"success": True, "message": {"role": "assistant", "content": "hello"}})
    _ask(panel, "more")
    assert runtime.requests[-1]["conversation"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "more"},
    ]


def test_ai_failure_keeps_user_message_and_shows_error(panel, runtime):
    _ask(panel, "hi")
    runtime.reply({"success": False, "error": 'API error (500): {"error":"AI chat failed"}'})
    assert [(m.role, m.content) for m in panel.messages] == [("user", "hi")]
    assert panel.ai_error == 'API error (500): {"error":"AI chat failed"}'
    assert panel.ai_loading is False
    assert panel.usage.usage_count == 0


@pytest.mark.parametrize("payload", [None, {"success": True}, {"success": False}, "garbage"])
def test_ai_unusable_reply_is_unknown_error(panel, runtime, payload):
    _ask(panel, "hi")
    runtime.reply(payload)
    assert panel.ai_error == "Unknown AI error"
    assert panel.ai_loading is False


def test_ai_send_failure_is_surfaced(storage):
    def broken(message, callback):
        raise RuntimeError("runtime unavailable")

    instance = OverlayPanel(page=PageContext(), storage=storage, send_runtime_message=broken)
    instance.mount()
    _ask(instance, "hi")
    assert instance.ai_error == "runtime unavailable"
    assert instance.ai_loading is False


def test_quota_blocks_free_users_at_limit(panel, runtime, storage):
    save_usage(storage, UsageState(usage_count=20, is_premium=False))
    panel.mount()
    _ask(panel, "one more")
    assert panel.ai_error == "Free limit reached. Upgrade to Premium for higher usage."
    assert panel.messages == []
    assert runtime.requests == []


def test_quota_reached_through_usage(panel, runtime):
    for index in range(20):
        _ask(panel, f"q{index}")
        runtime.reply({"success": True, "message": {"role": "assistant", "content": "a"}})
    assert panel.usage.usage_count == 20
    count = len(panel.messages)
    _ask(panel, "q20")
    assert len(panel.messages) == count
    assert len(runtime.requests) == 20
    assert panel.ai_error is not None and "Free limit reached" in panel.ai_error


def test_premium_is_not_limited(panel, runtime, storage):
    save_usage(storage, UsageState(usage_count=50, is_premium=True))
    panel.mount()
    _ask(panel, "hi")
    assert len(runtime.requests) == 1
    assert panel.ai_error is None


def test_reply_after_unmount_is_dropped(panel, runtime):
    _ask(panel, "hi")
    panel.unmount()
    runtime.reply({"success": True, "message": {"role": "assistant", "content": "late"}})
    assert [m.content for m in panel.messages] == ["hi"]
    assert panel.usage.usage_count == 0


def test_reply_applies_after_mode_switch_or_close(panel, runtime):
    _ask(panel, "hi")
    panel.set_mode(Mode.SEARCH)
    panel.close()
    runtime.reply({"success": True, "message": {"role": "assistant", "content": "hello"}})
    assert [m.content for m in panel.messages] == ["hi", "hello"]


def test_mode_switch_clears_error_but_keeps_history(panel, runtime):
    _ask(panel, "hi")
    runtime.reply({"success": False, "error": "boom"})
    assert panel.ai_error == "boom"
    panel.set_mode(Mode.SEARCH)
    assert panel.ai_error is None
    assert [m.content for m in panel.messages] == ["hi"]


# ---------------------------------------------------------------------- #
# Drag / resize
# ---------------------------------------------------------------------- #
def test_drag_clamps_to_right_edge(panel):
    geometry = panel.geometry
    panel.press_header(geometry.left + 50, geometry.top + 10)
    panel.pointer_move(5000, geometry.top + 10)
    assert panel.geometry.left == 1280 - 420 - EDGE_MARGIN


def test_drag_clamps_to_top_left_margin(panel):
    panel.press_header(100, 200)
    panel.pointer_move(-500, -500)
    assert (panel.geometry.left, panel.geometry.top) == (EDGE_MARGIN, EDGE_MARGIN)


def test_drag_follows_pointer_minus_offset(panel):
    panel.press_header(74, 200)  # offset (50, 10)
    panel.pointer_move(374, 310)
    assert (panel.geometry.left, panel.geometry.top) == (324, 300)
    panel.pointer_release()
    panel.pointer_move(600, 600)
    assert (panel.geometry.left, panel.geometry.top) == (324, 300)


def test_drag_ignores_controls_and_secondary_buttons(panel):
    assert panel.press_header(100, 200, on_control=True) is False
    assert panel.press_header(100, 200, button=2) is False
    panel.pointer_move(600, 600)
    assert panel.geometry == default_geometry(Viewport(1280, 800))


def test_resize_clamps_each_dimension(panel):
    panel.press_resize_handle(444, 610)
    panel.pointer_move(444 + 100, 610 - 1000)
    assert (panel.geometry.width, panel.geometry.height) == (520, 260)
    panel.pointer_move(444 + 5000, 610 + 5000)
    assert (panel.geometry.width, panel.geometry.height) == (900, 736)
    panel.pointer_move(444 - 1000, 610)
    assert panel.geometry.width == 320
    panel.pointer_release()
    assert panel.resizing is False


def test_resize_max_depends_on_viewport(panel):
    panel.set_viewport(600, 500)
    panel.press_resize_handle(0, 0)
    panel.pointer_move(1000, 1000)
    assert (panel.geometry.width, panel.geometry.height) == (536, 436)


def test_pointer_is_ignored_once_unmounted(panel):
    panel.press_header(100, 200)
    panel.unmount()
    panel.pointer_move(600, 600)
    assert panel.geometry == default_geometry(Viewport(1280, 800))


# ---------------------------------------------------------------------- #
# Persistence, premium and upgrade
# ---------------------------------------------------------------------- #
@pytest.mark.parametrize(
    "stored, expected",
    [
        ({}, UsageState(0, False)),
        ({"usageCount": 7, "isPremium": True}, UsageState(7, True)),
        ({"usageCount": "7", "isPremium": "yes"}, UsageState(0, False)),
        ({"usageCount": -3, "isPremium": 1}, UsageState(0, False)),
        ({"usageCount": True}, UsageState(0, False)),
    ],
)
def test_usage_loading_defaults_invalid_values(storage, stored, expected):
    storage.set(stored)
    assert load_usage(storage) == expected


def test_corrupt_storage_file_defaults(storage):
    storage.path.write_text("{not json", encoding="utf-8")
    assert load_usage(storage) == UsageState()


def test_toggle_premium_is_persisted(panel, storage):
    panel.toggle_premium()
    assert panel.usage.is_premium is True
    assert storage.get(["isPremium"]) == {"isPremium": True}
    assert panel.usage_label == "Premium · 0/20"
    panel.toggle_premium()
    assert panel.usage_label == "Free · 0/20 (approx.)"


def test_upgrade_opens_checkout_url(storage, runtime, opened):
    instance = OverlayPanel(
        page=PageContext(),
        storage=storage,
        send_runtime_message=runtime,
        start_checkout=lambda done: done("https://pay.example/1", None),
        open_url=opened.append,
    )
    instance.mount()
    instance.upgrade()
    assert opened == ["https://pay.example/1"]
    assert instance.ai_error is None


def test_upgrade_without_url_does_nothing(storage, runtime, opened):
    instance = OverlayPanel(
        page=PageContext(),
        storage=storage,
        send_runtime_message=runtime,
        start_checkout=lambda done: done(None, None),
        open_url=opened.append,
    )
    instance.mount()
    instance.upgrade()
    assert opened == []
    assert instance.ai_error is None


def test_upgrade_failure_uses_error_banner(storage, runtime, opened):
    instance = OverlayPanel(
        page=PageContext(),
        storage=storage,
        send_runtime_message=runtime,
        start_checkout=lambda done: done(None, "Failed to start checkout"),
        open_url=opened.append,
    )
    instance.mount()
    instance.upgrade()
    assert instance.ai_error == "Failed to start checkout"
    assert opened == []


def test_placeholder_follows_mode(panel):
    assert panel.placeholder == "Search the web..."
    panel.set_mode("terminal")
    assert "help" in panel.placeholder


def test_on_change_is_notified(storage, runtime):
    calls: list[int] = []
    instance = OverlayPanel(
        page=PageContext(),
        storage=storage,
        send_runtime_message=runtime,
        on_change=lambda: calls.append(1),
    )
    instance.mount()
    instance.toggle()
    assert len(calls) == 2


def test_collapsed_drag_clamps_with_header_height(panel):
    panel.minimize()
    panel.collapsed_height = 40
    panel.press_header(100, 200)
    panel.pointer_move(100, 5000)
    assert panel.geometry.top == 800 - 40 - EDGE_MARGIN
    assert panel.geometry.height == 420


def test_expanded_drag_clamps_with_full_height(panel):
    panel.press_header(100, 200)
    panel.pointer_move(100, 5000)
    assert panel.geometry.top == 800 - 420 - EDGE_MARGIN
