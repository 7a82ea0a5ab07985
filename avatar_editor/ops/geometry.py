"""Pure zoom/pan geometry for the circular avatar viewport.

No Qt and no pixel buffers here; everything is plain floats so the maths can be
tested directly.
"""

from __future__ import annotations

from dataclasses import dataclass

SLIDER_MIN = 0
SLIDER_MID = 50
SLIDER_MAX = 100


@dataclass(frozen=True, slots=True)
class ZoomBounds:
    """Zoom limits derived from one source image and one viewport size."""

    min_zoom: float
    fit_zoom: float

    @property
    def max_zoom(self) -> float:
        return 2.0 * self.fit_zoom


@dataclass(frozen=True, slots=True)
class OutputSpec:
    """On-screen viewport side and exported bitmap side, both in pixels."""

    viewport_size: int = 200
    output_size: int = 200


@dataclass(frozen=True, slots=True)
class SourceRect:
    """Square region of the source image, in source pixel coordinates."""

    center_x: float
    center_y: float
    size: float

    @property
    def left(self) -> float:
        return self.center_x - self.size / 2.0

    @property
    def top(self) -> float:
        return self.center_y - self.size / 2.0

    def within(self, width: int, height: int) -> bool:
        """True when the whole square lies inside `[0, width] x [0, height]`."""
        return (
            self.left >= 0.0
            and self.top >= 0.0
            and self.left + self.size <= width
            and self.top + self.size <= height
        )


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def compute_bounds(natural_w: int, natural_h: int, viewport_size: float) -> ZoomBounds:
    """Return the zoom range for an image shown in a square viewport.

    - fit_zoom: the shorter side exactly spans the viewport (no empty space).
    - min_zoom: the longer side exactly spans the viewport (whole image visible).
    """
    w, h, vs = float(natural_w), float(natural_h), float(viewport_size)
    if w <= 0 or h <= 0:
        raise ValueError(f"image dimensions must be positive, got {natural_w}x{natural_h}")
    if vs <= 0:
        raise ValueError(f"viewport size must be positive, got {viewport_size}")
    return ZoomBounds(min_zoom=vs / max(w, h), fit_zoom=vs / min(w, h))


def slider_to_zoom(slider: float, bounds: ZoomBounds) -> float:
    """Map a 0..100 slider position onto a zoom factor.

    Two linear segments meeting at 50 (= fit_zoom): the lower half spans
    min_zoom..fit_zoom, the upper half fit_zoom..2*fit_zoom. Out-of-range
    positions are clamped.
    """
    s = _clamp(float(slider), SLIDER_MIN, SLIDER_MAX)
    lo, fit = bounds.min_zoom, bounds.fit_zoom
    if s < SLIDER_MID:
        t = s / SLIDER_MID
        # min() keeps the lower half from overshooting fit by an ulp.
        return min(lo + (fit - lo) * t, fit)
    t = (s - SLIDER_MID) / (SLIDER_MAX - SLIDER_MID)
    return fit + fit * t


def compute_source_rect(
    natural_w: int,
    natural_h: int,
    zoom: float,
    offset: tuple[float, float],
    viewport_size: float,
) -> SourceRect:
    """Back-project the viewport into source pixel coordinates.

    The viewport is a square of `viewport_size`; its centre, moved by the pan
    offset and divided by the zoom, gives the centre of the source square. The
    result is not clamped to the image; callers decide how to treat the part
    outside it.
    """
    z = float(zoom)
    if z <= 0:
        raise ValueError(f"zoom must be positive, got {zoom}")
    vs = float(viewport_size)
    off_x, off_y = float(offset[0]), float(offset[1])

    scaled_w = natural_w * z
    scaled_h = natural_h * z
    center = vs / 2.0

    source_x = (center - off_x - scaled_w / 2.0) / z + natural_w / 2.0
    source_y = (center - off_y - scaled_h / 2.0) / z + natural_h / 2.0
    return SourceRect(center_x=source_x, center_y=source_y, size=vs / z)
