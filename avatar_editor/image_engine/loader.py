"""Background decoding for the edit session.

Decodes run on one worker thread. Every request gets an increasing id; only the
result for the latest id is emitted, so choosing a new file simply makes the
previous decode's result disappear (libvips decodes cannot be interrupted).
"""

import contextlib
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from PySide6.QtCore import QObject, Signal

from avatar_editor.intake import SourceImage, UploadFile, decode_upload
from avatar_editor.logger import get_logger

_logger = get_logger("loader")


class DecodeLoader(QObject):
    """Runs `decode_fn(upload, fill)` off-thread and reports through a signal.

    `image_decoded(req_id, SourceImage | None, Exception | None)` is emitted from
    the worker thread; receivers living on the UI thread get it queued.
    """

    image_decoded = Signal(int, object, object)  # req_id, source, error

    def __init__(
        self,
        decode_fn: Callable[[UploadFile, tuple[int, int, int]], SourceImage] = decode_upload,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._decode_fn = decode_fn
        self.io_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="avatar-io")
        self._next_id = 1
        self._latest_id: int | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def latest_id(self) -> int | None:
        with self._lock:
            return self._latest_id

    def request_decode(self, upload: UploadFile, fill: tuple[int, int, int] = (255, 255, 255)) -> int:
        """Queue a decode and return its request id."""
        with self._lock:
            if self._closed:
                raise RuntimeError("loader is shut down")
            req_id = self._next_id
            self._next_id += 1
            superseded = self._latest_id
            self._latest_id = req_id
        if superseded is not None:
            _logger.debug("request_decode: id=%s supersedes id=%s", req_id, superseded)
        _logger.debug("request_decode queued: name=%s id=%s bytes=%s", upload.name, req_id, upload.size)
        self.io_pool.submit(self._run_decode, req_id, upload, fill)
        return req_id

    def _run_decode(self, req_id: int, upload: UploadFile, fill: tuple[int, int, int]) -> None:
        source: SourceImage | None = None
        error: Exception | None = None
        try:
            source = self._decode_fn(upload, fill)
        except Exception as e:
            error = e
        with self._lock:
            if self._closed:
                return
            if req_id != self._latest_id:
                _logger.debug("decode_finished stale: id=%s latest=%s (dropped)", req_id, self._latest_id)
                return
        if error is not None:
            _logger.debug("decode_finished error: id=%s err=%s", req_id, error)
        else:
            _logger.debug("decode_finished emit: id=%s size=%sx%s", req_id, source.width, source.height)
        self.image_decoded.emit(req_id, source, error)

    def discard_pending(self) -> None:
        """Forget the outstanding request so its result is dropped."""
        with self._lock:
            self._latest_id = None

    def submit_task(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run `fn(*args)` on the same worker thread as decodes."""
        return self.io_pool.submit(fn, *args)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            self._latest_id = None
        with contextlib.suppress(Exception):
            self.io_pool.shutdown(wait=False, cancel_futures=True)
