"""Image intake: validate a user-selected file and decode it.

Validation is synchronous and cheap (declared type and byte size only); the
decode itself is what `DecodeLoader` runs off the UI thread.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from avatar_editor.errors import TooLargeError, UnsupportedTypeError
from avatar_editor.image_engine.decoder import decode_image_bytes
from avatar_editor.logger import get_logger

_logger = get_logger("intake")

MAX_FILE_SIZE = 2 * 1024 * 1024
ALLOWED_TYPES: tuple[str, ...] = ("image/jpeg", "image/png")


@dataclass(frozen=True, slots=True)
class IntakeLimits:
    allowed_types: tuple[str, ...] = ALLOWED_TYPES
    max_file_size: int = MAX_FILE_SIZE


@dataclass(frozen=True, slots=True)
class UploadFile:
    """A selected file: name, declared MIME type, byte size and content."""

    name: str
    type: str
    size: int
    data: bytes = field(repr=False)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> UploadFile:
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(name=name, type=mime_type, size=len(data), data=bytes(data))

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> UploadFile:
        p = Path(path)
        return cls.from_bytes(p.name, p.read_bytes(), mime_type)


@dataclass(frozen=True, slots=True, eq=False)
class SourceImage:
    """Decoded image; `pixels` is an RGB uint8 array of shape (height, width, 3)."""

    width: int
    height: int
    pixels: np.ndarray = field(repr=False)
    name: str = ""

    @classmethod
    def from_array(cls, pixels: np.ndarray, name: str = "") -> SourceImage:
        h, w = int(pixels.shape[0]), int(pixels.shape[1])
        # Private read-only copy; the caller's array stays writable.
        pixels = np.array(pixels, dtype=np.uint8, copy=True)
        pixels.setflags(write=False)
        return cls(width=w, height=h, pixels=pixels, name=name)


def validate_upload(upload: UploadFile, limits: IntakeLimits | None = None) -> None:
    """Reject files the editor will not try to decode.

    Raises:
        UnsupportedTypeError: declared MIME type is not allowed.
        TooLargeError: byte size is over the ceiling.
    """
    limits = limits or IntakeLimits()
    mime = (upload.type or "").strip().lower()
    if mime not in limits.allowed_types:
        _logger.info("rejected %s: unsupported type %r", upload.name, upload.type)
        raise UnsupportedTypeError(upload.type, limits.allowed_types)
    if int(upload.size) > int(limits.max_file_size):
        _logger.info("rejected %s: %d bytes > %d", upload.name, upload.size, limits.max_file_size)
        raise TooLargeError(upload.size, limits.max_file_size)


def decode_upload(upload: UploadFile, fill: tuple[int, int, int] = (255, 255, 255)) -> SourceImage:
    """Decode an already validated upload.

    Raises:
        DecodeError: the bytes are not a decodable image.
    """
    pixels = decode_image_bytes(upload.data, fill)
    source = SourceImage.from_array(pixels, name=upload.name)
    _logger.debug("decoded %s: %dx%d", upload.name, source.width, source.height)
    return source
