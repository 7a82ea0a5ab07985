import os
import sys
from pathlib import Path

from avatar_editor.errors import AvatarEditorError
from avatar_editor.intake import UploadFile, decode_upload, validate_upload
from avatar_editor.logger import get_logger
from avatar_editor.ops.compositor import export_avatar
from avatar_editor.ops.geometry import compute_bounds, slider_to_zoom
from avatar_editor.settings_manager import SettingsManager
from avatar_editor.sink import DirectorySink, replace_avatar

logger = get_logger("main")


def _build_parser():
    import argparse

    parser = argparse.ArgumentParser(prog="avatar-editor", description="Crop an image into a round avatar")
    parser.add_argument("image", help="JPEG or PNG file to edit")
    parser.add_argument("-o", "--out", default="avatar.jpg", help="Where to write the JPEG (default: avatar.jpg)")
    parser.add_argument("--settings", help="Settings JSON file")
    parser.add_argument("--headless", action="store_true", help="Render without opening a window")
    parser.add_argument("--slider", type=float, default=50, help="Zoom slider position 0..100 (headless)")
    parser.add_argument(
        "--offset", type=float, nargs=2, default=(0.0, 0.0), metavar=("X", "Y"), help="Pan offset (headless)"
    )
    parser.add_argument("--store", help="Store the result in this directory instead of --out")
    parser.add_argument("--user-type", choices=("parent", "child"), default="parent")
    parser.add_argument("--user-id", default="local")
    parser.add_argument("--current-url", help="URL of the avatar being replaced (deleted after storing)")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    return parser


def _write_result(args, data: bytes) -> str:
    if args.store:
        url = replace_avatar(
            DirectorySink(args.store),
            data,
            user_type=args.user_type,
            user_id=args.user_id,
            current_url=args.current_url,
        )
        logger.info("avatar stored: %s", url)
        return url
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    logger.info("avatar written: %s (%d bytes)", out, len(data))
    return str(out)


def _run_headless(args, settings: SettingsManager) -> int:
    upload = UploadFile.from_path(args.image)
    validate_upload(upload, settings.intake_limits())
    source = decode_upload(upload, settings.fill_rgb())
    spec = settings.output_spec()
    bounds = compute_bounds(source.width, source.height, spec.viewport_size)
    zoom = slider_to_zoom(args.slider, bounds)
    data = export_avatar(
        source.pixels,
        zoom,
        tuple(args.offset),
        spec,
        quality=settings.jpeg_quality,
        fill=settings.fill_rgb(),
    )
    print(_write_result(args, data))
    return 0


def _run_gui(args, settings: SettingsManager, argv: list[str]) -> int:
    from PySide6.QtWidgets import QApplication

    from avatar_editor.app.session import EditSession
    from avatar_editor.ui_avatar import AvatarCropDialog

    app = QApplication.instance() or QApplication(argv[:1])
    limits = settings.intake_limits()
    session = EditSession(
        settings.output_spec(),
        limits=limits,
        quality=settings.jpeg_quality,
        fill=settings.fill_rgb(),
    )
    dialog = AvatarCropDialog(session, user_name=args.user_id, max_file_size=limits.max_file_size)
    results: list[str] = []

    def _on_exported(data: bytes) -> None:
        try:
            results.append(_write_result(args, data))
        except (OSError, ValueError) as e:
            logger.error("failed to save avatar: %s", e)

    dialog.avatarExported.connect(_on_exported)
    dialog.load_file(UploadFile.from_path(args.image))
    dialog.show()
    app.exec()
    if not results:
        return 1
    print(results[0])
    return 0


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv

    args = _build_parser().parse_args(argv[1:])
    if args.log_level:
        os.environ["AVATAR_EDITOR_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["AVATAR_EDITOR_LOG_CATS"] = args.log_cats
    get_logger()  # re-read the env overrides

    settings = SettingsManager(args.settings)
    try:
        if args.headless:
            return _run_headless(args, settings)
        return _run_gui(args, settings, argv)
    except AvatarEditorError as e:
        logger.error("%s", e)
        return 2
    except OSError as e:
        logger.error("I/O error: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(run())
