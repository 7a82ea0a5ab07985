"""Pytest configuration.

Session, pan-controller and dialog tests use PySide6 objects. We create a single
`QApplication` for the entire session as early as possible (before collection
imports any Qt module) and cleanly shut it down at the end.
"""

from __future__ import annotations

import os
from typing import Any

import pytest
from helpers.images import encode_with_vips, split_image

# Headless test runs: use the offscreen Qt platform unless one is configured.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return encode_with_vips(split_image(64, 32), ".jpg", Q=95)


@pytest.fixture
def png_bytes() -> bytes:
    return encode_with_vips(split_image(40, 60), ".png")
