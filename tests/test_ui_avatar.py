from __future__ import annotations

import numpy as np
import pytest

pytest.importorskip("PySide6")

from helpers.images import split_image
from PySide6.QtCore import QPointF, Qt

from avatar_editor.app.session import EditSession
from avatar_editor.intake import SourceImage, UploadFile
from avatar_editor.ui_avatar import AvatarCropDialog, rgb_to_qimage, size_hint_text


@pytest.fixture
def session():
    s = EditSession()
    yield s
    s.close()


def test_rgb_to_qimage_owns_its_pixels() -> None:
    arr = split_image(6, 4)
    img = rgb_to_qimage(arr)
    assert (img.width(), img.height()) == (6, 4)
    arr[:] = 0
    assert img.pixelColor(0, 0).red() == 255


def test_size_hint_text() -> None:
    assert size_hint_text(2 * 1024 * 1024) == "JPEG or PNG, max 2MB"


def test_dialog_starts_disabled(qtbot, session: EditSession) -> None:
    dlg = AvatarCropDialog(session, user_name="Ada Lovelace")
    qtbot.addWidget(dlg)
    assert not dlg.slider.isEnabled()
    assert not dlg.save_btn.isEnabled()
    assert dlg.viewport.width() == session.spec.viewport_size


def test_invalid_upload_shows_inline_error(qtbot, session: EditSession) -> None:
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)
    assert dlg.load_file(UploadFile("a.gif", "image/gif", 10, b"GIF89a")) is None
    assert dlg.error_label.text() == "Please upload a JPEG or PNG image"
    assert session.source is None


def test_slider_and_state_stay_in_sync(qtbot, session: EditSession) -> None:
    session.install_source(SourceImage.from_array(split_image(400, 200)))
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)
    assert dlg.slider.isEnabled()

    dlg.slider.setValue(75)
    assert session.state.sliderValue == 75
    session.set_slider(20)
    assert dlg.slider.value() == 20


def test_drag_in_viewport_pans(qtbot, session: EditSession) -> None:
    session.install_source(SourceImage.from_array(split_image(400, 200)))
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)
    dlg.show()
    qtbot.waitExposed(dlg)

    vp = dlg.viewport
    qtbot.mousePress(vp, Qt.MouseButton.LeftButton, pos=QPointF(100, 100).toPoint())
    assert session.state.dragging
    session.pan.move(130, 115)
    session.pan.release()
    assert session.state.offset == (30.0, 15.0)


def test_save_emits_jpeg_and_accepts(qtbot, session: EditSession) -> None:
    pytest.importorskip("pyvips")
    session.install_source(SourceImage.from_array(np.zeros((50, 80, 3), dtype=np.uint8)))
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)

    with qtbot.waitSignal(dlg.avatarExported, timeout=10000) as blocker:
        dlg.save_btn.click()

    assert blocker.args[0].startswith(b"\xff\xd8")
    assert session.is_closed


def test_cancel_closes_session(qtbot, session: EditSession) -> None:
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)
    dlg.cancel_btn.click()
    assert session.is_closed


def test_load_after_close_shows_inline_error(qtbot, session: EditSession) -> None:
    dlg = AvatarCropDialog(session)
    qtbot.addWidget(dlg)
    session.close()

    assert dlg.load_file(UploadFile("a.png", "image/png", 4, b"x" * 4)) is None
    assert dlg.error_label.text() == "This editing session is closed"
