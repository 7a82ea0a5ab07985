from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal

from avatar_editor.ops.geometry import SLIDER_MAX, SLIDER_MID, SLIDER_MIN


class ViewportState(QObject):
    """Mutable state of one edit session's viewport.

    Design:
    - sliderValue is the raw UI position (int 0..100); zoom is derived from it.
    - offsetX/offsetY are in viewport pixels and are never clamped; the
      compositor pads whatever falls outside the image.
    - Mutations go through the `_set_*` helpers, which only emit on change.
    """

    sliderValueChanged = Signal(int)
    offsetChanged = Signal(float, float)
    draggingChanged = Signal(bool)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._slider = SLIDER_MID
        self._offset_x = 0.0
        self._offset_y = 0.0
        self._dragging = False

    # ---- read-only properties ----
    def _get_slider_value(self) -> int:
        return int(self._slider)

    sliderValue = Property(int, _get_slider_value, notify=sliderValueChanged)  # type: ignore[arg-type]

    def _get_offset_x(self) -> float:
        return float(self._offset_x)

    offsetX = Property(float, _get_offset_x, notify=offsetChanged)  # type: ignore[arg-type]

    def _get_offset_y(self) -> float:
        return float(self._offset_y)

    offsetY = Property(float, _get_offset_y, notify=offsetChanged)  # type: ignore[arg-type]

    def _get_dragging(self) -> bool:
        return bool(self._dragging)

    dragging = Property(bool, _get_dragging, notify=draggingChanged)  # type: ignore[arg-type]

    @property
    def offset(self) -> tuple[float, float]:
        return float(self._offset_x), float(self._offset_y)

    def snapshot(self) -> tuple[int, float, float, bool]:
        return int(self._slider), float(self._offset_x), float(self._offset_y), bool(self._dragging)

    # ---- internal mutation helpers ----
    def _set_slider_value(self, value: float) -> None:
        v = int(round(max(SLIDER_MIN, min(SLIDER_MAX, float(value)))))
        if v == self._slider:
            return
        self._slider = v
        self.sliderValueChanged.emit(v)

    def _set_offset(self, x: float, y: float) -> None:
        nx = float(x)
        ny = float(y)
        if nx == self._offset_x and ny == self._offset_y:
            return
        self._offset_x = nx
        self._offset_y = ny
        self.offsetChanged.emit(nx, ny)

    def _set_dragging(self, value: bool) -> None:
        v = bool(value)
        if v == self._dragging:
            return
        self._dragging = v
        self.draggingChanged.emit(v)

    def reset(self) -> None:
        """Back to {slider 50, offset (0, 0), not dragging}."""
        self._set_dragging(False)
        self._set_offset(0.0, 0.0)
        self._set_slider_value(SLIDER_MID)
