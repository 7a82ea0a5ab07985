"""Render the visible viewport region into a square, circle-clipped bitmap.

The source square from `compute_source_rect` is resampled (bilinear) onto an
`output_size` x `output_size` canvas. Parts of the square that fall outside the
image are painted with the fill colour, as is everything outside the inscribed
circle; JPEG has no alpha, so "clipped" means "fill colour".
"""

from __future__ import annotations

import numpy as np

from avatar_editor.errors import ExportError
from avatar_editor.image_engine.encoder import encode_jpeg
from avatar_editor.logger import get_logger
from avatar_editor.ops.geometry import OutputSpec, compute_source_rect

_logger = get_logger("compositor")

WHITE = (255, 255, 255)


def circle_coverage(size: int) -> np.ndarray:
    """Per-pixel coverage (0..1) of the circle inscribed in a `size` square.

    The edge gets one pixel of linear falloff for an anti-aliased rim.
    """
    n = int(size)
    centers = np.arange(n, dtype=np.float64) + 0.5 - n / 2.0
    dist = np.hypot(centers[:, None], centers[None, :])
    return np.clip(n / 2.0 - dist + 0.5, 0.0, 1.0)


def _sample_axis(coords: np.ndarray, length: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Indices/weights into an axis padded by one fill pixel on each side.

    Pixel i covers [i - 0.5, i + 0.5) around its centre. Inside the image the
    edge pixel is repeated; only coordinates past the image edge read the pad.
    """
    c = np.clip(coords, 0.0, length - 1.0)
    i0 = np.floor(c).astype(np.intp)
    i1 = np.minimum(i0 + 1, length - 1)
    frac = c - i0
    # Shift into padded index space (pad at 0 and length + 1).
    i0 = i0 + 1
    i1 = i1 + 1
    before = coords < -0.5
    after = coords > length - 0.5
    i0[before] = i1[before] = 0
    i0[after] = i1[after] = length + 1
    frac[before | after] = 0.0
    return i0, i1, frac


def _gather(
    pixels: np.ndarray, rows: np.ndarray, cols: np.ndarray, fill: tuple[int, int, int]
) -> np.ndarray:
    """pixels[rows][:, cols] in padded index space; the pad (0 and len+1) reads `fill`."""
    h, w = pixels.shape[:2]
    in_rows = (rows >= 1) & (rows <= h)
    in_cols = (cols >= 1) & (cols <= w)
    out = np.empty((rows.size, cols.size, 3), dtype=np.float64)
    out[:] = np.asarray(fill, dtype=np.float64)
    if in_rows.any() and in_cols.any():
        out[np.ix_(in_rows, in_cols)] = pixels[np.ix_(rows[in_rows] - 1, cols[in_cols] - 1)][:, :, :3]
    return out


def _sample_bilinear(
    pixels: np.ndarray, xs: np.ndarray, ys: np.ndarray, fill: tuple[int, int, int]
) -> np.ndarray:
    h, w = pixels.shape[:2]
    x0, x1, fx = _sample_axis(xs, w)
    y0, y1, fy = _sample_axis(ys, h)

    fx = fx[None, :, None]
    fy = fy[:, None, None]
    top = _gather(pixels, y0, x0, fill) * (1.0 - fx) + _gather(pixels, y0, x1, fill) * fx
    bottom = _gather(pixels, y1, x0, fill) * (1.0 - fx) + _gather(pixels, y1, x1, fill) * fx
    return top * (1.0 - fy) + bottom * fy


def _check_surface(spec: OutputSpec) -> None:
    if int(spec.output_size) <= 0 or float(spec.viewport_size) <= 0:
        raise ExportError(
            f"cannot allocate output surface (viewport={spec.viewport_size}, output={spec.output_size})"
        )


def render_avatar(
    pixels: np.ndarray | None,
    zoom: float,
    offset: tuple[float, float],
    spec: OutputSpec,
    fill: tuple[int, int, int] = WHITE,
) -> np.ndarray:
    """Return the circle-clipped `output_size` square as an RGB uint8 array.

    Raises:
        ExportError: no image, non-positive zoom, or unusable output spec.
    """
    if pixels is None or getattr(pixels, "ndim", 0) != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ExportError("No image loaded")
    _check_surface(spec)
    if not float(zoom) > 0:
        raise ExportError(f"invalid zoom {zoom}")

    h, w = pixels.shape[:2]
    rect = compute_source_rect(w, h, zoom, offset, spec.viewport_size)
    if not rect.within(w, h):
        _logger.debug("source rect %s leaves the %dx%d image; padding with %s", rect, w, h, fill)

    n = int(spec.output_size)
    step = rect.size / n
    # Sample at output pixel centres; source pixel i covers [i, i+1).
    centers = (np.arange(n, dtype=np.float64) + 0.5) * step
    xs = rect.left + centers - 0.5
    ys = rect.top + centers - 0.5

    canvas = _sample_bilinear(pixels, xs, ys, fill)

    alpha = circle_coverage(n)[:, :, None]
    canvas = canvas * alpha + np.asarray(fill, dtype=np.float64) * (1.0 - alpha)
    return np.clip(np.rint(canvas), 0, 255).astype(np.uint8)


def export_avatar(
    pixels: np.ndarray | None,
    zoom: float,
    offset: tuple[float, float],
    spec: OutputSpec,
    *,
    quality: float = 0.9,
    fill: tuple[int, int, int] = WHITE,
) -> bytes:
    """Render and JPEG-encode the avatar.

    Raises:
        ExportError: see `render_avatar`.
        EncodeError: the encoder failed.
    """
    rgb = render_avatar(pixels, zoom, offset, spec, fill)
    data = encode_jpeg(rgb, quality)
    _logger.debug("exported %dx%d avatar: %d bytes", spec.output_size, spec.output_size, len(data))
    return data

