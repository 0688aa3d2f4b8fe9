"""Hosting page context and the terminal's single evaluation boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..services.errors import EvaluationError


@dataclass(slots=True)
class PageContext:
    """What the terminal can see of the page hosting the overlay.

    ``evaluate`` runs arbitrary code with the page's privileges. It is the
    only place doing so and can be switched off with ``eval_enabled``.
    """

    url: str = ""
    title: str = ""
    eval_enabled: bool = True
    namespace: dict[str, Any] = field(default_factory=dict)

    def evaluate(self, expression: str) -> Any:
        if not self.eval_enabled:
            raise EvaluationError("page evaluation is disabled")
        scope: dict[str, Any] = {"url": self.url, "title": self.title}
        scope.update(self.namespace)
        try:
            return eval(expression, scope)  # noqa: S307 - documented capability
        except (Exception, SystemExit, KeyboardInterrupt) as exc:
            raise EvaluationError(str(exc) or exc.__class__.__name__) from exc
