from __future__ import annotations

from typing import Any, Dict


class CompletionError(RuntimeError):
    """Raised when the completion provider fails or answers unexpectedly."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def error_response(message: str) -> Dict[str, Any]:
    return {"error": message}
