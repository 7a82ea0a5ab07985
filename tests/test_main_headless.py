from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

pytest.importorskip("pyvips")

from avatar_editor.image_engine.decoder import decode_image_bytes
from avatar_editor.main import run


@pytest.fixture
def image_path(tmp_path: Path, png_bytes: bytes) -> Path:
    p = tmp_path / "photo.png"
    p.write_bytes(png_bytes)
    return p


def test_headless_writes_square_jpeg(tmp_path: Path, image_path: Path, capsys) -> None:
    out = tmp_path / "out" / "avatar.jpg"
    rc = run(["avatar-editor", str(image_path), "--headless", "-o", str(out), "--slider", "70"])

    assert rc == 0
    assert capsys.readouterr().out.strip() == str(out)
    assert decode_image_bytes(out.read_bytes()).shape == (200, 200, 3)


def test_headless_respects_output_size_setting(tmp_path: Path, image_path: Path) -> None:
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"output_size": 96}), encoding="utf-8")
    out = tmp_path / "a.jpg"

    rc = run(["avatar-editor", str(image_path), "--headless", "-o", str(out), "--settings", str(settings)])
    assert rc == 0
    assert decode_image_bytes(out.read_bytes()).shape == (96, 96, 3)


def test_headless_store_replaces_previous(tmp_path: Path, image_path: Path, capsys, monkeypatch) -> None:
    import avatar_editor.sink as sink_mod

    ticks = iter(range(1000, 2000))
    monkeypatch.setattr(sink_mod, "time", SimpleNamespace(time=lambda: next(ticks)))
    store = tmp_path / "store"
    base = ["avatar-editor", str(image_path), "--headless", "--store", str(store), "--user-id", "u1"]

    assert run(base) == 0
    first_url = capsys.readouterr().out.strip()
    first = sorted((store / "avatars" / "parents").iterdir())
    assert len(first) == 1

    assert run([*base, "--current-url", first_url, "--offset", "5", "5"]) == 0
    remaining = sorted((store / "avatars" / "parents").iterdir())
    assert len(remaining) == 1
    assert remaining != first


def test_rejected_upload_returns_error_code(tmp_path: Path) -> None:
    gif = tmp_path / "anim.gif"
    gif.write_bytes(b"GIF89a")
    assert run(["avatar-editor", str(gif), "--headless", "-o", str(tmp_path / "x.jpg")]) == 2
    assert not (tmp_path / "x.jpg").exists()


def test_missing_file_returns_error_code(tmp_path: Path) -> None:
    assert run(["avatar-editor", str(tmp_path / "nope.png"), "--headless"]) == 2
