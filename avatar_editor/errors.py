"""Error types raised by the avatar editor.

Every failure is terminal for the operation that raised it; the caller decides
whether to prompt the user again. `str(err)` is suitable for showing inline.
"""

from __future__ import annotations


class AvatarEditorError(Exception):
    """Base class for all avatar editor failures."""


class IntakeError(AvatarEditorError):
    """The selected file cannot become a source image."""


class UnsupportedTypeError(IntakeError):
    def __init__(self, mime_type: str, allowed: tuple[str, ...] | list[str] = ()) -> None:
        self.mime_type = mime_type
        self.allowed = tuple(allowed)
        super().__init__("Please upload a JPEG or PNG image")


class TooLargeError(IntakeError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = int(size)
        self.limit = int(limit)
        mb = limit / (1024 * 1024)
        label = f"{mb:g}MB" if mb >= 1 else f"{limit} bytes"
        super().__init__(f"Image must be less than {label}")


class DecodeError(IntakeError):
    """Bytes passed the type check but could not be decoded (corrupt or truncated)."""


class ExportError(AvatarEditorError):
    """Export requested with no image loaded, or the output surface is unusable."""


class EncodeError(AvatarEditorError):
    """The bitmap encoder failed to produce output bytes."""


class SessionClosedError(AvatarEditorError):
    """The edit session was closed; choose a file again to start a new one."""
