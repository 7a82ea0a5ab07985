"""Image decoder using pyvips.

Decodes uploaded bytes (JPEG/PNG) into an RGB numpy array that the compositor
samples from.
"""

import contextlib
from typing import Any

import numpy as np

from avatar_editor.errors import DecodeError
from avatar_editor.logger import get_logger

_logger = get_logger("decoder")

# Constants
RGB_CHANNELS = 3

_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        _pyvips = pyvips
    return _pyvips


def _decode_with_pyvips_from_buffer(data: bytes, fill: tuple[int, int, int]) -> "np.ndarray":
    """Decode image bytes into an RGB numpy array using pyvips."""
    pyvips = _get_pyvips_module()
    # Configure pyvips caches to avoid memory growth
    with contextlib.suppress(Exception):
        pyvips.cache_set_max(0)
        pyvips.cache_set_max_mem(0)
        pyvips.cache_set_max_files(0)

    # fail_on="error" makes truncated files raise instead of decoding partially.
    image = pyvips.Image.new_from_buffer(data, "", access="sequential", fail_on="error")

    with contextlib.suppress(Exception):
        image = image.colourspace("srgb")
    if image.hasalpha():
        image = image.flatten(background=list(fill))
    if image.bands > RGB_CHANNELS:
        image = image.extract_band(0, n=RGB_CHANNELS)
    elif image.bands < RGB_CHANNELS:
        image = pyvips.Image.bandjoin([image] * RGB_CHANNELS)
    if image.format != "uchar":
        image = image.cast("uchar")

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)
    array = array.copy()
    if array.shape[2] != RGB_CHANNELS:
        raise RuntimeError(f"Unsupported band count after conversion: {array.shape[2]}")
    return array


def decode_image_bytes(data: bytes, fill: tuple[int, int, int] = (255, 255, 255)) -> "np.ndarray":
    """Decode image bytes into an RGB uint8 array of shape (h, w, 3).

    Transparent pixels are flattened onto `fill`.

    Raises:
        DecodeError: the bytes are not a decodable image.
    """
    if not data:
        raise DecodeError("The selected file is empty")
    try:
        return _decode_with_pyvips_from_buffer(bytes(data), fill)
    except ImportError:
        raise
    except Exception as e:
        _logger.debug("decode failed: %s", e, exc_info=True)
        raise DecodeError("Could not read this image; the file may be damaged") from e
