"""Drag-to-pan state machine.

Two states, idle and dragging. Press inside the viewport enters dragging and
records `drag_start = pointer - offset`; every move while dragging sets
`offset = pointer - drag_start`; release anywhere returns to idle.

Move/release listeners are global (an application-wide event filter) so a drag
that leaves the viewport still ends, but they exist only while dragging: the
filter is installed on press and removed on release, cancel or teardown.
"""

from __future__ import annotations

import contextlib

from PySide6.QtCore import QCoreApplication, QEvent, QObject, QPointF, Signal
from PySide6.QtWidgets import QWidget

from avatar_editor.app.state.viewport_state import ViewportState
from avatar_editor.logger import get_logger

_logger = get_logger("pan_controller")

_MOVE_EVENTS = (QEvent.Type.MouseMove, QEvent.Type.TouchUpdate)
_END_EVENTS = (QEvent.Type.MouseButtonRelease, QEvent.Type.TouchEnd, QEvent.Type.TouchCancel)


class PanController(QObject):
    dragStarted = Signal()
    dragFinished = Signal(float, float)  # final offset

    def __init__(
        self,
        state: ViewportState,
        viewport_size: float,
        viewport: QWidget | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._state = state
        self._viewport_size = float(viewport_size)
        self._viewport = viewport
        self._drag_start: tuple[float, float] | None = None
        self._listening_on: QCoreApplication | None = None

    def set_viewport(self, viewport: QWidget | None) -> None:
        """Widget whose coordinates pointer positions are mapped into."""
        self._viewport = viewport

    @property
    def is_dragging(self) -> bool:
        return self._drag_start is not None

    @property
    def is_listening(self) -> bool:
        return self._listening_on is not None

    @property
    def drag_start(self) -> tuple[float, float] | None:
        return self._drag_start

    def press(self, x: float, y: float) -> bool:
        """Pointer down at viewport (x, y). Returns True if a drag started."""
        if self.is_dragging:
            return False
        vs = self._viewport_size
        if not (0.0 <= x < vs and 0.0 <= y < vs):
            return False
        ox, oy = self._state.offset
        self._drag_start = (float(x) - ox, float(y) - oy)
        self._state._set_dragging(True)
        self._attach()
        _logger.debug("drag start at (%.1f, %.1f), offset=(%.1f, %.1f)", x, y, ox, oy)
        self.dragStarted.emit()
        return True

    def move(self, x: float, y: float) -> None:
        if self._drag_start is None:
            return
        sx, sy = self._drag_start
        self._state._set_offset(float(x) - sx, float(y) - sy)

    def release(self) -> None:
        if self._drag_start is None:
            return
        self._drag_start = None
        self._detach()
        self._state._set_dragging(False)
        ox, oy = self._state.offset
        _logger.debug("drag end, offset=(%.1f, %.1f)", ox, oy)
        self.dragFinished.emit(ox, oy)

    def cancel(self) -> None:
        """End any drag and drop the listeners (session teardown)."""
        self.release()
        self._detach()

    # ---- global listeners (only while dragging) ----
    def _attach(self) -> None:
        if self._listening_on is not None:
            return
        app = QCoreApplication.instance()
        if app is None:
            # Headless use: press/move/release are driven directly.
            return
        app.installEventFilter(self)
        self._listening_on = app

    def _detach(self) -> None:
        app = self._listening_on
        if app is None:
            return
        self._listening_on = None
        with contextlib.suppress(RuntimeError):
            app.removeEventFilter(self)

    def _map_event_pos(self, event: QEvent) -> QPointF | None:
        if event.type() == QEvent.Type.TouchUpdate:
            points = event.points()  # type: ignore[attr-defined]
            if not points:
                return None
            local, global_ = points[0].position(), points[0].globalPosition()
        else:
            local = event.position()  # type: ignore[attr-defined]
            global_ = event.globalPosition()  # type: ignore[attr-defined]
        if self._viewport is not None and global_ is not None:
            return QPointF(self._viewport.mapFromGlobal(global_))
        return local

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:  # type: ignore[override]
        if self._drag_start is None:
            return False
        et = event.type()
        if et in _MOVE_EVENTS:
            pos = self._map_event_pos(event)
            if pos is not None:
                self.move(pos.x(), pos.y())
        elif et in _END_EVENTS:
            self.release()
        # Never consume: other widgets still see their events.
        return False
