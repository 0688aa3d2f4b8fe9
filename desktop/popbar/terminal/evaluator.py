"""Tiny terminal emulator commands."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..services.errors import EvaluationError
from ..services.schemas import TerminalEntry
from .page import PageContext

CLEAR_COMMAND = "clear"

HELP_TEXT = (
    "Commands: help, time, url, title, echo <text>, clear (handled locally), "
    "js <expression> (evals in page context; be careful)."
)


def _local_timestamp() -> str:
    return datetime.now().strftime("%x, %X")


def run_terminal_command(
    line: str,
    page: PageContext,
    *,
    now: Optional[Callable[[], str]] = None,
) -> TerminalEntry:
    """Evaluate one terminal line.

    An empty line yields an entry with an empty command, which callers must
    not record. ``clear`` is not handled here.
    """
    trimmed = line.strip()
    if not trimmed:
        return TerminalEntry(command="", output="")

    parts = trimmed.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "help":
        return TerminalEntry(command=line, output=HELP_TEXT)
    if cmd == "time":
        return TerminalEntry(command=line, output=(now or _local_timestamp)())
    if cmd == "url":
        return TerminalEntry(command=line, output=page.url)
    if cmd == "title":
        return TerminalEntry(command=line, output=page.title)
    if cmd == "echo":
        return TerminalEntry(command=line, output=arg)
    if cmd == "js":
        try:
            result = page.evaluate(arg)
        except EvaluationError as exc:
            return TerminalEntry(command=line, output=f"Error: {exc}")
        return TerminalEntry(command=line, output=str(result))
    return TerminalEntry(command=line, output=f"Unknown command: {cmd}. Type 'help' for options.")
