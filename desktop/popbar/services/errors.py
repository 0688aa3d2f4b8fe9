"""Error taxonomy of the overlay client."""

from __future__ import annotations


class PopbarError(Exception):
    """Base class for overlay client errors."""


class TransportError(PopbarError):
    """The backend answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str, message: str | None = None) -> None:
        super().__init__(message or f"API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class MalformedResponseError(PopbarError):
    """The backend answered successfully but without the expected fields."""

    def __init__(self, message: str = "No response from API") -> None:
        super().__init__(message)


class QuotaExceededError(PopbarError):
    """The free-tier message limit has been reached."""

    def __init__(self, message: str = "Free limit reached. Upgrade to Premium for higher usage.") -> None:
        super().__init__(message)


class EvaluationError(PopbarError):
    """Evaluating a page expression failed."""


class DeliveryError(PopbarError):
    """A cross-context message could not reach its target."""
