"""Avatar crop dialog.

Circular preview, zoom slider and drag-to-pan on top of an `EditSession`. The
preview draws the image exactly the way the compositor samples it: scaled by
the current zoom with its top-left corner at the pan offset.
"""

from __future__ import annotations

from concurrent.futures import Future

import numpy as np
from PySide6.QtCore import QEvent, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QImage, QMouseEvent, QPainter, QPainterPath, QPaintEvent, QPen
from PySide6.QtWidgets import (
    QDialog,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from avatar_editor.app.session import EditSession
from avatar_editor.errors import AvatarEditorError, ExportError
from avatar_editor.intake import UploadFile
from avatar_editor.logger import get_logger
from avatar_editor.ops.geometry import SLIDER_MAX, SLIDER_MIN
from avatar_editor.sink import initials_for

_logger = get_logger("ui_avatar")

_ACCENT = QColor("#5B2CFF")
_PLACEHOLDER_BG = QColor("#EAE3FF")
_RIM = QColor("#F1F1F4")


def rgb_to_qimage(rgb: np.ndarray) -> QImage:
    h, w = rgb.shape[:2]
    buf = np.ascontiguousarray(rgb[:, :, :3], dtype=np.uint8)
    # copy() detaches the QImage from the numpy buffer
    return QImage(buf.tobytes(), w, h, w * 3, QImage.Format.Format_RGB888).copy()


def size_hint_text(max_bytes: int) -> str:
    mb = max_bytes / (1024 * 1024)
    return f"JPEG or PNG, max {mb:g}MB"


class AvatarViewport(QWidget):
    """Fixed-size circular viewport showing the session's image."""

    def __init__(self, session: EditSession, user_name: str = "", parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._session = session
        self._user_name = user_name
        self._image: QImage | None = None

        size = int(session.spec.viewport_size)
        self.setFixedSize(size, size)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setCursor(Qt.CursorShape.OpenHandCursor)

        session.pan.set_viewport(self)
        session.loaded.connect(self._on_loaded)
        session.zoomChanged.connect(lambda _z: self.update())
        session.state.offsetChanged.connect(lambda _x, _y: self.update())
        session.state.draggingChanged.connect(self._on_dragging_changed)

    def _on_loaded(self, source: object) -> None:
        pixels = getattr(source, "pixels", None)
        self._image = rgb_to_qimage(pixels) if pixels is not None else None
        self.update()

    def _on_dragging_changed(self, dragging: bool) -> None:
        self.setCursor(Qt.CursorShape.ClosedHandCursor if dragging else Qt.CursorShape.OpenHandCursor)

    def paintEvent(self, event: QPaintEvent) -> None:  # noqa: ARG002
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        size = float(self.width())
        circle = QRectF(0.0, 0.0, size, size)

        clip = QPainterPath()
        clip.addEllipse(circle)
        painter.setClipPath(clip)

        zoom = self._session.zoom
        if self._image is not None and zoom is not None:
            painter.fillRect(circle, QColor(*self._session.fill))
            ox, oy = self._session.state.offset
            painter.save()
            painter.translate(ox, oy)
            painter.scale(zoom, zoom)
            painter.drawImage(0, 0, self._image)
            painter.restore()
        else:
            painter.fillRect(circle, _PLACEHOLDER_BG)
            font = QFont(painter.font())
            font.setPixelSize(max(10, int(size / 4)))
            font.setWeight(QFont.Weight.DemiBold)
            painter.setFont(font)
            painter.setPen(_ACCENT)
            painter.drawText(circle, Qt.AlignmentFlag.AlignCenter, initials_for(self._user_name))

        painter.setClipping(False)
        painter.setPen(QPen(_RIM, 4))
        painter.drawEllipse(circle.adjusted(2, 2, -2, -2))
        painter.end()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton and self._session.source is not None:
            pos = event.position()
            if self._session.pan.press(pos.x(), pos.y()):
                event.accept()
                return
        super().mousePressEvent(event)

    def event(self, event: QEvent) -> bool:
        if event.type() == QEvent.Type.TouchBegin and self._session.source is not None:
            points = event.points()  # type: ignore[attr-defined]
            if points:
                pos = points[0].position()
                if self._session.pan.press(pos.x(), pos.y()):
                    event.accept()
                    return True
        return super().event(event)


class AvatarCropDialog(QDialog):
    """Preview/crop dialog; emits `avatarExported(bytes)` on save."""

    avatarExported = Signal(bytes)
    _exportFinished = Signal(object, object)  # data, error (worker -> UI thread)

    def __init__(
        self,
        session: EditSession,
        parent: QWidget | None = None,
        *,
        user_name: str = "",
        max_file_size: int = 2 * 1024 * 1024,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("Preview your photo")
        self.setModal(True)
        self._session = session
        self._export_future: Future | None = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(12)

        title = QLabel("Preview your photo")
        title_font = QFont(title.font())
        title_font.setPointSizeF(title_font.pointSizeF() * 1.2)
        title_font.setWeight(QFont.Weight.DemiBold)
        title.setFont(title_font)
        layout.addWidget(title)

        self.viewport = AvatarViewport(session, user_name, self)
        row = QHBoxLayout()
        row.addStretch()
        row.addWidget(self.viewport)
        row.addStretch()
        layout.addLayout(row)

        self.slider = QSlider(Qt.Orientation.Horizontal)
        self.slider.setRange(SLIDER_MIN, SLIDER_MAX)
        self.slider.setValue(session.state.sliderValue)
        self.slider.setEnabled(False)
        self.slider.valueChanged.connect(session.set_slider)
        session.state.sliderValueChanged.connect(self._sync_slider)
        layout.addWidget(self.slider)

        self.hint_label = QLabel(size_hint_text(max_file_size))
        layout.addWidget(self.hint_label)

        self.error_label = QLabel("")
        self.error_label.setStyleSheet("color: #EF4444;")
        self.error_label.setWordWrap(True)
        self.error_label.setVisible(False)
        layout.addWidget(self.error_label)

        buttons = QHBoxLayout()
        self.cancel_btn = QPushButton("Cancel")
        self.cancel_btn.clicked.connect(self.reject)
        buttons.addWidget(self.cancel_btn)
        self.save_btn = QPushButton("Save photo")
        self.save_btn.setEnabled(False)
        self.save_btn.clicked.connect(self._on_save)
        buttons.addWidget(self.save_btn)
        layout.addLayout(buttons)

        session.loaded.connect(self._on_loaded)
        session.loadFailed.connect(self._on_load_failed)
        self._exportFinished.connect(self._on_export_finished)

        if session.source is not None:
            self.viewport._on_loaded(session.source)
            self._on_loaded(session.source)

    # ---- state sync ----
    def _sync_slider(self, value: int) -> None:
        if self.slider.value() != value:
            self.slider.blockSignals(True)
            self.slider.setValue(value)
            self.slider.blockSignals(False)

    def _set_error(self, message: str | None) -> None:
        self.error_label.setText(message or "")
        self.error_label.setVisible(bool(message))

    def _on_loaded(self, _source: object) -> None:
        self._set_error(None)
        self.slider.setEnabled(True)
        self.save_btn.setEnabled(True)

    def _on_load_failed(self, error: object) -> None:
        self._set_error(str(error))

    # ---- actions ----
    def load_file(self, upload: UploadFile) -> Future | None:
        """Start loading `upload`; validation errors are shown inline."""
        self._set_error(None)
        try:
            return self._session.load(upload)
        except AvatarEditorError as e:
            _logger.info("upload rejected: %s", e)
            self._set_error(str(e))
            return None

    def _on_save(self) -> None:
        self._set_error(None)
        try:
            future = self._session.export()
        except ExportError as e:
            self._set_error(str(e))
            return
        self._export_future = future
        self.save_btn.setEnabled(False)
        self.save_btn.setText("Saving...")
        future.add_done_callback(self._forward_export_result)

    def _forward_export_result(self, future: Future) -> None:
        # Runs on the worker thread; hop to the UI thread via a queued signal.
        if future.cancelled():
            self._exportFinished.emit(None, ExportError("Export cancelled"))
            return
        err = future.exception()
        self._exportFinished.emit(None if err else future.result(), err)

    def _on_export_finished(self, data: object, error: object) -> None:
        self.save_btn.setText("Save photo")
        self.save_btn.setEnabled(True)
        if error is not None:
            _logger.error("export failed: %s", error)
            self._set_error(str(error) or "Failed to save avatar")
            return
        self.avatarExported.emit(bytes(data))
        self.accept()

    def done(self, result: int) -> None:
        self._session.close()
        super().done(result)
