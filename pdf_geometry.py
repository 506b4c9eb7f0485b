"""PDF user space to viewport-percentage conversion.

PDF coordinates put the origin at the bottom-left of the page with y growing
upward; the signing overlay positions boxes from the top-left with y growing
downward, as percentages of the page size. Two entry points exist so that a
caller never flips a rectangle twice:

  from_pdf_rect       – rectangle in native PDF space (annotations, glyph runs)
  from_viewport_rect  – rectangle already in top-left screen space

Every result is clamped so overlays never receive zero-size or off-page boxes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from pdf_models import NormalizedRect, PageGeometry, PageGeometryError, RawRect


@dataclass(frozen=True)
class ClampBounds:
    min_width: float
    max_width: float
    min_height: float
    max_height: float


WIDGET_BOUNDS = ClampBounds(min_width=1.0, max_width=80.0, min_height=0.5, max_height=20.0)
GENERAL_BOUNDS = ClampBounds(min_width=1.0, max_width=100.0, min_height=0.5, max_height=math.inf)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def clamp_rect(
    x: float,
    y: float,
    width: float,
    height: float,
    bounds: ClampBounds = GENERAL_BOUNDS,
) -> NormalizedRect:
    return NormalizedRect(
        x=_clamp(x, 0.0, 100.0),
        y=_clamp(y, 0.0, 100.0),
        width=_clamp(width, bounds.min_width, bounds.max_width),
        height=_clamp(height, bounds.min_height, bounds.max_height),
    )


def _to_percent(
    x1: float, y1: float, x2: float, y2: float, page: PageGeometry, bounds: ClampBounds
) -> NormalizedRect:
    if not page.is_valid:
        raise PageGeometryError(f"unusable page geometry {page.width}x{page.height}")
    left, right = min(x1, x2), max(x1, x2)
    top, bottom = min(y1, y2), max(y1, y2)
    return clamp_rect(
        left / page.width * 100,
        top / page.height * 100,
        (right - left) / page.width * 100,
        (bottom - top) / page.height * 100,
        bounds,
    )


def from_pdf_rect(
    rect: RawRect, page: PageGeometry, bounds: ClampBounds = GENERAL_BOUNDS
) -> NormalizedRect:
    """Flip both corners into top-left space, then normalize."""
    return _to_percent(
        rect.x1, page.height - rect.y1, rect.x2, page.height - rect.y2, page, bounds
    )


def from_viewport_rect(
    rect: RawRect, page: PageGeometry, bounds: ClampBounds = GENERAL_BOUNDS
) -> NormalizedRect:
    return _to_percent(rect.x1, rect.y1, rect.x2, rect.y2, page, bounds)


to_normalized = from_pdf_rect
