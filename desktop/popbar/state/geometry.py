"""Panel geometry and the clamping rules applied while dragging/resizing."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_WIDTH = 420
DEFAULT_HEIGHT = 420
DEFAULT_LEFT = 24
DEFAULT_TOP_MIN = 24
EDGE_MARGIN = 16
MIN_WIDTH = 320
MIN_HEIGHT = 260
MAX_SIZE = 900
VIEWPORT_GUTTER = 64
# Header-only height while collapsed; the window overrides it with its real header.
COLLAPSED_HEIGHT = 44


@dataclass(slots=True, frozen=True)
class Viewport:
    """Visible area the panel must stay within."""

    width: float
    height: float


@dataclass(slots=True)
class PanelGeometry:
    """Position and size of the panel, in pixels."""

    left: float
    top: float
    width: float
    height: float


def default_top(viewport: Viewport) -> float:
    return max(DEFAULT_TOP_MIN, viewport.height / 2 - DEFAULT_HEIGHT / 2)


def default_geometry(viewport: Viewport) -> PanelGeometry:
    return PanelGeometry(
        left=DEFAULT_LEFT,
        top=default_top(viewport),
        width=DEFAULT_WIDTH,
        height=DEFAULT_HEIGHT,
    )


def clamp_position(
    left: float,
    top: float,
    width: float,
    height: float,
    viewport: Viewport,
    margin: float = EDGE_MARGIN,
) -> tuple[float, float]:
    """Keep a panel of the given size inside the viewport minus ``margin``.

    The far edge wins when the viewport is too small for both bounds.
    """
    max_left = viewport.width - width - margin
    max_top = viewport.height - height - margin
    left = max(left, margin)
    top = max(top, margin)
    return min(left, max_left), min(top, max_top)


def clamp_size(width: float, height: float, viewport: Viewport) -> tuple[float, float]:
    """Clamp width and height independently to their allowed ranges."""
    max_width = min(viewport.width - VIEWPORT_GUTTER, MAX_SIZE)
    max_height = min(viewport.height - VIEWPORT_GUTTER, MAX_SIZE)
    width = min(max(width, MIN_WIDTH), max_width)
    height = min(max(height, MIN_HEIGHT), max_height)
    return width, height
