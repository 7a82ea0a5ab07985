from __future__ import annotations

import json
import os
from typing import Any

from PySide6.QtGui import QColor

from .intake import IntakeLimits
from .logger import get_logger
from .ops.geometry import OutputSpec

_logger = get_logger("settings")


class SettingsManager:
    def __init__(self, settings_path: str | None = None):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "viewport_size": 200,
        "output_size": 200,
        "max_file_size": 2 * 1024 * 1024,
        "allowed_types": ["image/jpeg", "image/png"],
        "jpeg_quality": 0.9,
        "fill_color": "#FFFFFF",
    }

    def load(self) -> None:
        try:
            if self.settings_path and os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        if not self.settings_path:
            return
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    def _positive_int(self, key: str) -> int:
        val = self.get(key)
        try:
            iv = int(val)
        except (TypeError, ValueError):
            iv = 0
        if iv <= 0:
            _logger.warning("invalid %s=%r; using %s", key, val, self.DEFAULTS[key])
            return int(self.DEFAULTS[key])
        return iv

    def output_spec(self) -> OutputSpec:
        return OutputSpec(
            viewport_size=self._positive_int("viewport_size"),
            output_size=self._positive_int("output_size"),
        )

    def intake_limits(self) -> IntakeLimits:
        types = self.get("allowed_types")
        if not isinstance(types, (list, tuple)) or not types:
            types = self.DEFAULTS["allowed_types"]
        return IntakeLimits(
            allowed_types=tuple(str(t).strip().lower() for t in types),
            max_file_size=self._positive_int("max_file_size"),
        )

    @property
    def jpeg_quality(self) -> float:
        try:
            q = float(self.get("jpeg_quality"))
        except (TypeError, ValueError):
            q = 0.0
        if not 0.0 < q <= 1.0:
            _logger.warning("jpeg_quality out of range: %r", self.get("jpeg_quality"))
            return float(self.DEFAULTS["jpeg_quality"])
        return q

    def fill_rgb(self) -> tuple[int, int, int]:
        hexcol = self.get("fill_color")
        if isinstance(hexcol, str):
            color = QColor(hexcol)
            if color.isValid():
                return color.red(), color.green(), color.blue()
        _logger.warning("saved fill_color invalid: %s", hexcol)
        return 255, 255, 255
