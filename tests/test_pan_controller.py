from __future__ import annotations

import pytest

pytest.importorskip("PySide6")

from PySide6.QtCore import QEvent, QPointF, Qt
from PySide6.QtGui import QMouseEvent
from PySide6.QtWidgets import QApplication

from avatar_editor.app.state.viewport_state import ViewportState
from avatar_editor.ops.pan_controller import PanController


def _mouse(kind: QEvent.Type, x: float, y: float) -> QMouseEvent:
    button = Qt.MouseButton.NoButton if kind == QEvent.Type.MouseMove else Qt.MouseButton.LeftButton
    buttons = Qt.MouseButton.LeftButton if kind == QEvent.Type.MouseMove else Qt.MouseButton.NoButton
    return QMouseEvent(kind, QPointF(x, y), QPointF(x, y), button, buttons, Qt.KeyboardModifier.NoModifier)


@pytest.fixture
def state() -> ViewportState:
    return ViewportState()


@pytest.fixture
def pan(state: ViewportState) -> PanController:
    ctl = PanController(state, viewport_size=200)
    yield ctl
    ctl.cancel()


def test_drag_moves_offset(state: ViewportState, pan: PanController) -> None:
    assert pan.press(100, 100) is True
    assert state.dragging is True
    assert pan.drag_start == (100.0, 100.0)

    pan.move(130, 115)
    assert state.offset == (30.0, 15.0)

    pan.release()
    assert state.dragging is False
    assert state.offset == (30.0, 15.0)


def test_second_drag_continues_from_current_offset(state: ViewportState, pan: PanController) -> None:
    pan.press(100, 100)
    pan.move(130, 115)
    pan.release()

    pan.press(10, 10)
    assert pan.drag_start == (-20.0, -5.0)
    pan.move(0, 0)
    pan.release()
    assert state.offset == (20.0, 5.0)


def test_offset_is_not_clamped(state: ViewportState, pan: PanController) -> None:
    pan.press(1, 1)
    pan.move(5000, -4000)
    assert state.offset == (4999.0, -4001.0)


def test_press_outside_viewport_does_not_start_drag(state: ViewportState, pan: PanController) -> None:
    assert pan.press(250, 10) is False
    assert pan.press(-1, 10) is False
    assert state.dragging is False
    assert pan.is_listening is False


def test_move_while_idle_is_ignored(state: ViewportState, pan: PanController) -> None:
    pan.move(50, 50)
    assert state.offset == (0.0, 0.0)


def test_listeners_only_attached_while_dragging(pan: PanController) -> None:
    assert pan.is_listening is False
    pan.press(100, 100)
    assert pan.is_listening is True
    pan.release()
    assert pan.is_listening is False

    for _ in range(5):
        pan.press(100, 100)
        pan.release()
    assert pan.is_listening is False


def test_global_move_and_release_events_drive_drag(state: ViewportState, pan: PanController) -> None:
    app = QApplication.instance()
    pan.press(100, 100)

    # Events delivered anywhere in the app reach the drag through the app filter.
    pan.eventFilter(app, _mouse(QEvent.Type.MouseMove, 130, 115))
    assert state.offset == (30.0, 15.0)

    # Release far outside the viewport still ends the drag.
    pan.eventFilter(app, _mouse(QEvent.Type.MouseButtonRelease, 900, 900))
    assert state.dragging is False
    assert pan.is_listening is False

    # After release, stray moves change nothing.
    pan.eventFilter(app, _mouse(QEvent.Type.MouseMove, 0, 0))
    assert state.offset == (30.0, 15.0)


def test_release_via_sent_event_detaches_filter(qtbot, state: ViewportState, pan: PanController) -> None:
    from PySide6.QtWidgets import QWidget

    other = QWidget()
    qtbot.addWidget(other)
    pan.press(100, 100)
    QApplication.sendEvent(other, _mouse(QEvent.Type.MouseButtonRelease, 500, 500))
    assert state.dragging is False
    assert pan.is_listening is False


def test_cancel_ends_drag(state: ViewportState, pan: PanController) -> None:
    finished = []
    pan.dragFinished.connect(lambda x, y: finished.append((x, y)))
    pan.press(100, 100)
    pan.move(110, 100)
    pan.cancel()
    assert state.dragging is False
    assert pan.is_listening is False
    assert finished == [(10.0, 0.0)]
