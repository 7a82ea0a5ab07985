"""Bitmap encoding using pyvips."""

import contextlib
from typing import Any

import numpy as np

from avatar_editor.errors import EncodeError
from avatar_editor.image_engine.decoder import RGB_CHANNELS, _get_pyvips_module
from avatar_editor.logger import get_logger

_logger = get_logger("encoder")

_RGB_DIMS = 3


def _quality_to_q(quality: float) -> int:
    """Map a 0..1 quality (canvas style) onto libvips' 1..100 Q."""
    return max(1, min(100, round(float(quality) * 100)))


def encode_jpeg(rgb: np.ndarray, quality: float = 0.9) -> bytes:
    """Encode an RGB numpy array to JPEG bytes.

    Output is deterministic for a given array and quality.

    Raises:
        EncodeError: the array has the wrong shape or libvips fails to encode.
    """
    if rgb.ndim != _RGB_DIMS or rgb.shape[2] != RGB_CHANNELS:
        raise EncodeError("expected RGB numpy array with shape (h, w, 3)")

    h, w, _ = rgb.shape
    if rgb.dtype != np.uint8:
        rgb = np.clip(rgb, 0, 255).astype(np.uint8)

    q = _quality_to_q(quality)
    try:
        pyvips = _get_pyvips_module()
        # pyvips expects a contiguous bytes buffer in C order
        buf = np.ascontiguousarray(rgb).tobytes()
        img: Any = pyvips.Image.new_from_memory(buf, w, h, RGB_CHANNELS, "uchar")
        with contextlib.suppress(Exception):
            img = img.copy(interpretation="srgb")
        out = img.write_to_buffer(".jpg", Q=q)
    except Exception as e:
        _logger.error("jpeg encode failed (%dx%d, Q=%d): %s", w, h, q, e, exc_info=True)
        raise EncodeError("Could not encode the avatar image") from e

    # Normalize to bytes in case pyvips returns a memoryview-like object
    if isinstance(out, bytes):
        return out
    return bytes(out)
