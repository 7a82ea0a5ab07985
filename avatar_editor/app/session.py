"""One avatar editing session.

An `EditSession` owns exactly one source image at a time, the zoom bounds
derived from it and the viewport state (slider, pan offset, drag flag). It is
created when a file is chosen and closed on cancel/commit.

Threading model: all state is mutated on the thread the session lives on.
Decodes finish on the loader's worker thread and come back through a queued
signal; exports only read state and return a `Future` completed by the worker.
Do not block the UI thread on `load(...).result()`; wait for `loaded` /
`loadFailed` instead.
"""

from __future__ import annotations

import contextlib
from concurrent.futures import Future

from PySide6.QtCore import QObject, Signal

from avatar_editor.app.state.viewport_state import ViewportState
from avatar_editor.errors import ExportError, SessionClosedError
from avatar_editor.image_engine.loader import DecodeLoader
from avatar_editor.intake import IntakeLimits, SourceImage, UploadFile, validate_upload
from avatar_editor.logger import get_logger
from avatar_editor.ops.compositor import WHITE, export_avatar, render_avatar
from avatar_editor.ops.geometry import OutputSpec, ZoomBounds, compute_bounds, slider_to_zoom
from avatar_editor.ops.pan_controller import PanController

_logger = get_logger("session")


class EditSession(QObject):
    loaded = Signal(object)  # SourceImage
    loadFailed = Signal(object)  # AvatarEditorError
    zoomChanged = Signal(float)
    closed = Signal()

    def __init__(
        self,
        spec: OutputSpec | None = None,
        *,
        limits: IntakeLimits | None = None,
        quality: float = 0.9,
        fill: tuple[int, int, int] = WHITE,
        loader: DecodeLoader | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._spec = spec or OutputSpec()
        self._limits = limits or IntakeLimits()
        self._quality = float(quality)
        self._fill = tuple(fill)

        self._source: SourceImage | None = None
        self._bounds: ZoomBounds | None = None
        self._closed = False

        self.state = ViewportState(self)
        self.pan = PanController(self.state, self._spec.viewport_size, parent=self)
        self.state.sliderValueChanged.connect(self._on_slider_changed)

        self._owns_loader = loader is None
        self._loader = loader or DecodeLoader(parent=self)
        self._loader.image_decoded.connect(self._on_image_decoded)
        self._pending_id: int | None = None
        self._pending_future: Future | None = None
        self._export_future: Future | None = None

    # ---- read-only views ----
    @property
    def spec(self) -> OutputSpec:
        return self._spec

    @property
    def fill(self) -> tuple[int, int, int]:
        return self._fill

    @property
    def source(self) -> SourceImage | None:
        return self._source

    @property
    def bounds(self) -> ZoomBounds | None:
        return self._bounds

    @property
    def is_loading(self) -> bool:
        return self._pending_id is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def zoom(self) -> float | None:
        if self._bounds is None:
            return None
        return slider_to_zoom(self.state.sliderValue, self._bounds)

    # ---- loading ----
    def load(self, upload: UploadFile) -> Future:
        """Validate and start decoding `upload`.

        Returns a Future that resolves to the installed `SourceImage` or fails
        with `DecodeError`. A newer `load` cancels the previous Future.

        Raises:
            UnsupportedTypeError, TooLargeError: synchronously; nothing changes.
        """
        self._ensure_open()
        validate_upload(upload, self._limits)

        self._cancel_pending_load()
        future: Future = Future()
        self._pending_future = future
        self._pending_id = self._loader.request_decode(upload, self._fill)
        _logger.info("loading %s (%d bytes) as request %s", upload.name, upload.size, self._pending_id)
        return future

    def _cancel_pending_load(self) -> None:
        prev = self._pending_future
        self._pending_future = None
        self._pending_id = None
        if prev is not None and prev.cancel():
            _logger.debug("previous load superseded")

    def _on_image_decoded(self, req_id: int, source: object, error: object) -> None:
        if self._closed or req_id != self._pending_id:
            _logger.debug("ignoring decode result for request %s (pending=%s)", req_id, self._pending_id)
            return
        future = self._pending_future
        self._pending_future = None
        self._pending_id = None

        if error is not None or not isinstance(source, SourceImage):
            err = error if isinstance(error, Exception) else RuntimeError("decode produced no image")
            _logger.warning("load failed: %s", err)
            if future is not None and not future.cancelled():
                future.set_exception(err)
            self.loadFailed.emit(err)
            return

        self._install(source)
        if future is not None and not future.cancelled():
            future.set_result(source)
        self.loaded.emit(source)

    def _install(self, source: SourceImage) -> None:
        self.pan.cancel()
        self._source = source
        self._bounds = compute_bounds(source.width, source.height, self._spec.viewport_size)
        self.state.reset()
        _logger.info(
            "loaded %s %dx%d: min_zoom=%.4f fit_zoom=%.4f",
            source.name or "<image>",
            source.width,
            source.height,
            self._bounds.min_zoom,
            self._bounds.fit_zoom,
        )
        self.zoomChanged.emit(self.zoom)

    def install_source(self, source: SourceImage) -> None:
        """Adopt an already decoded image (headless callers, tests)."""
        self._ensure_open()
        self._cancel_pending_load()
        self._loader.discard_pending()
        self._install(source)

    # ---- editing ----
    def set_slider(self, value: float) -> None:
        self.state._set_slider_value(value)

    def _on_slider_changed(self, _value: int) -> None:
        z = self.zoom
        if z is not None:
            self.zoomChanged.emit(z)

    def set_offset(self, x: float, y: float) -> None:
        self.state._set_offset(x, y)

    # ---- export ----
    def _require_source(self) -> SourceImage:
        if self._closed:
            raise ExportError("Session is closed")
        if self._source is None or self._bounds is None:
            raise ExportError("No image loaded")
        return self._source

    def render(self, spec: OutputSpec | None = None):
        """Composite the current view synchronously and return RGB pixels."""
        source = self._require_source()
        return render_avatar(source.pixels, self.zoom, self.state.offset, spec or self._spec, self._fill)

    def export(self, spec: OutputSpec | None = None) -> Future:
        """Encode the current view; returns a Future of JPEG bytes.

        The viewport size of `spec` must match the session's, since offsets are
        in that viewport's pixels; only `output_size` may differ.

        Raises:
            ExportError: synchronously, if nothing is loaded, the session is
                closed, `spec` is unusable, or an export is already running.
        """
        source = self._require_source()
        spec = spec or self._spec
        if spec.viewport_size != self._spec.viewport_size:
            raise ExportError(
                f"viewport size {spec.viewport_size} does not match session viewport {self._spec.viewport_size}"
            )
        if spec.output_size <= 0:
            raise ExportError(f"cannot allocate a {spec.output_size}px output surface")
        if self._export_future is not None and not self._export_future.done():
            raise ExportError("An export is already in progress")

        zoom = self.zoom
        offset = self.state.offset
        _logger.info(
            "export %s: zoom=%.4f offset=(%.1f, %.1f) -> %dpx",
            source.name or "<image>",
            zoom,
            offset[0],
            offset[1],
            spec.output_size,
        )
        self._export_future = self._loader.submit_task(
            _export_job, source.pixels, zoom, offset, spec, self._quality, self._fill
        )
        return self._export_future

    # ---- teardown ----
    def close(self) -> None:
        if self._closed:
            return
        self.pan.cancel()
        self._cancel_pending_load()
        self._loader.discard_pending()
        with contextlib.suppress(RuntimeError, TypeError):
            self._loader.image_decoded.disconnect(self._on_image_decoded)
        if self._owns_loader:
            self._loader.shutdown()
        self._source = None
        self._bounds = None
        self._closed = True
        _logger.debug("session closed")
        self.closed.emit()

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError("This editing session is closed")


def _export_job(pixels, zoom, offset, spec, quality, fill) -> bytes:
    return export_avatar(pixels, zoom, offset, spec, quality=quality, fill=fill)
