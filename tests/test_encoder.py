import numpy as np
import pytest

pytest.importorskip("pyvips")

from helpers.images import split_image

from avatar_editor.errors import EncodeError, ExportError
from avatar_editor.image_engine.decoder import decode_image_bytes
from avatar_editor.image_engine.encoder import encode_jpeg
from avatar_editor.ops.compositor import export_avatar
from avatar_editor.ops.geometry import OutputSpec


def test_encode_jpeg_produces_jpeg_of_same_size() -> None:
    out = encode_jpeg(split_image(30, 20), 0.9)
    assert out.startswith(b"\xff\xd8")
    back = decode_image_bytes(out)
    assert back.shape == (20, 30, 3)


def test_encode_rejects_wrong_shape() -> None:
    with pytest.raises(EncodeError):
        encode_jpeg(np.zeros((10, 10), dtype=np.uint8))


def test_encode_failure_is_encode_error(monkeypatch) -> None:
    import avatar_editor.image_engine.encoder as enc

    class _Broken:
        class Image:
            @staticmethod
            def new_from_memory(*args, **kwargs):
                raise RuntimeError("boom")

    monkeypatch.setattr(enc, "_get_pyvips_module", lambda: _Broken)
    with pytest.raises(EncodeError):
        encode_jpeg(split_image(4, 4))


def test_export_is_square_and_idempotent() -> None:
    pixels = split_image(300, 120)
    spec = OutputSpec(viewport_size=200, output_size=200)
    a = export_avatar(pixels, 200 / 120, (0, 0), spec, quality=0.9)
    b = export_avatar(pixels, 200 / 120, (0, 0), spec, quality=0.9)
    assert a == b
    assert decode_image_bytes(a).shape == (200, 200, 3)


def test_export_output_size_differs_from_viewport() -> None:
    pixels = split_image(80, 80)
    data = export_avatar(pixels, 2.5, (0, 0), OutputSpec(viewport_size=200, output_size=512))
    assert decode_image_bytes(data).shape == (512, 512, 3)


def test_export_without_pixels_is_export_error() -> None:
    with pytest.raises(ExportError):
        export_avatar(None, 1.0, (0, 0), OutputSpec())
