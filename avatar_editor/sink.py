"""Where exported avatars go.

The editor only produces JPEG bytes; storing them belongs to the caller. These
helpers describe that contract: object keys of the form
`{user_type}s/{user_id}-{timestamp}.jpg`, a store that hands back a public URL,
and replace-then-delete of the previous avatar.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Protocol

from avatar_editor.logger import get_logger

_logger = get_logger("sink")

USER_TYPES = ("parent", "child")


class AvatarSink(Protocol):
    def store(self, key: str, data: bytes) -> str:
        """Persist `data` under `key` and return its public URL."""
        ...

    def remove(self, key: str) -> None: ...


def avatar_object_key(user_type: str, user_id: str, timestamp_ms: int | None = None) -> str:
    if user_type not in USER_TYPES:
        raise ValueError(f"unknown user type {user_type!r}")
    if not user_id:
        raise ValueError("user_id is required")
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{user_type}s/{user_id}-{int(timestamp_ms)}.jpg"


def object_key_from_public_url(url: str | None, bucket: str = "avatars") -> str | None:
    """Recover the object key from a public URL (`.../{bucket}/{key}`)."""
    if not url:
        return None
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    key = url.split(marker, 1)[1].split("?", 1)[0]
    return key or None


def initials_for(name: str) -> str:
    """Up to two upper-case initials for the placeholder avatar."""
    return "".join(part[0] for part in name.split() if part)[:2].upper()


class DirectorySink:
    """Content store backed by a local directory.

    URLs look like `file:///.../<root>/avatars/<key>` so
    `object_key_from_public_url` works on them.
    """

    def __init__(self, root: str | Path, bucket: str = "avatars") -> None:
        self.bucket = bucket
        self.base = Path(root).resolve() / bucket

    def _path(self, key: str) -> Path:
        p = (self.base / key).resolve()
        if self.base not in p.parents:
            raise ValueError(f"key escapes the store: {key!r}")
        return p

    def store(self, key: str, data: bytes) -> str:
        p = self._path(key)
        if p.exists():
            raise FileExistsError(f"avatar already stored under {key!r}")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        _logger.info("stored avatar %s (%d bytes)", key, len(data))
        return p.as_uri()

    def remove(self, key: str) -> None:
        p = self._path(key)
        try:
            p.unlink()
            _logger.info("removed avatar %s", key)
        except FileNotFoundError:
            _logger.debug("remove: %s already gone", key)


def replace_avatar(
    sink: AvatarSink,
    data: bytes,
    *,
    user_type: str,
    user_id: str,
    current_url: str | None = None,
    bucket: str = "avatars",
    timestamp_ms: int | None = None,
) -> str:
    """Store a new avatar, then delete the one it replaces. Returns the new URL."""
    key = avatar_object_key(user_type, user_id, timestamp_ms)
    url = sink.store(key, data)
    old_key = object_key_from_public_url(current_url, bucket)
    if old_key and old_key != key:
        sink.remove(old_key)
    return url
