"""Small synthetic images for tests."""

from __future__ import annotations

import numpy as np
import pytest


def split_image(w: int, h: int, left=(255, 0, 0), right=(0, 0, 255)) -> np.ndarray:
    """RGB array whose left half is `left` and right half is `right`."""
    arr = np.empty((h, w, 3), dtype=np.uint8)
    arr[:, : w // 2] = left
    arr[:, w // 2 :] = right
    return arr


def encode_with_vips(rgb: np.ndarray, suffix: str = ".jpg", **kwargs) -> bytes:
    pyvips = pytest.importorskip("pyvips")
    h, w = rgb.shape[:2]
    img = pyvips.Image.new_from_memory(np.ascontiguousarray(rgb).tobytes(), w, h, 3, "uchar")
    return bytes(img.write_to_buffer(suffix, **kwargs))
