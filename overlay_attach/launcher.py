from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from overlay_attach.command_channel import CommandChannel
from overlay_attach.commands import UNAVAILABLE_MESSAGE, AttachCommandService, ProviderUnavailable
from overlay_attach.config import DEFAULT_SETTINGS_PATH, load_attach_settings
from overlay_attach.engine import AttachmentEngine
from overlay_attach.logging_utils import configure_logging
from overlay_attach.poll_timers import clamp_poll_ms
from overlay_attach.qt_overlay import AttachOverlayWindow, QtScheduler, primary_screen_bounds
from overlay_attach.window_query import create_window_query_provider


def resolve_settings_path(args_settings: Optional[str]) -> Path:
    if args_settings:
        return Path(args_settings).expanduser().resolve()
    env_override = os.getenv("OVERLAY_ATTACH_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return DEFAULT_SETTINGS_PATH


def _parse_window_id(value: str) -> int:
    token = value.strip()
    try:
        if token.lower().startswith("0x"):
            return int(token, 16)
        return int(token, 10)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid window id: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a click-through overlay glued to an X11 window")
    parser.add_argument("--settings", help="Path to overlay_attach_settings.json")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--attach", type=_parse_window_id, metavar="ID", help="Attach to a window id (decimal or 0x hex)")
    target.add_argument("--follow", action="store_true", help="Follow whichever window is focused")
    target.add_argument("--list", action="store_true", help="Print attachable windows as JSON and exit")
    parser.add_argument("--poll-ms", type=int, help="Poll interval in milliseconds (50-500)")
    parser.add_argument("--outline", action="store_true", help="Draw an outline so the overlay is visible")
    parser.add_argument("--stdin-commands", action="store_true", help="Accept JSON command lines on stdin")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_attach_settings(settings_path)
    if args.debug:
        settings = replace(settings, debug=True)
    poll_ms = clamp_poll_ms(args.poll_ms) if args.poll_ms is not None else settings.poll_ms

    logger = configure_logging(debug=settings.debug, retention=settings.log_retention)
    logger.info("Starting overlay attach client (pid=%s)", os.getpid())
    logger.debug(
        "Loaded settings from %s: poll=%dms enabled=%s tool_timeout=%.2fs title=%s",
        settings_path,
        poll_ms,
        settings.enabled,
        settings.tool_timeout,
        settings.overlay_title,
    )

    provider = create_window_query_provider(
        logger.getChild("Query"),
        enabled=settings.enabled,
        tool_timeout=settings.tool_timeout,
    )

    if args.list:
        if provider is None:
            print(UNAVAILABLE_MESSAGE, file=sys.stderr)
            return 2
        print(json.dumps([ref.to_payload() for ref in provider.list_windows()], indent=2))
        return 0

    app = QApplication(sys.argv)
    window = AttachOverlayWindow(settings.overlay_title, outline=args.outline)
    scheduler = QtScheduler(window)
    engine = AttachmentEngine(
        provider,
        lambda: window,
        after=scheduler.after,
        after_cancel=scheduler.after_cancel,
        primary_bounds_fn=primary_screen_bounds,
        poll_ms=poll_ms,
        logger=logger.getChild("Engine"),
    )
    service = AttachCommandService(engine, logger=logger.getChild("Commands"))
    if not engine.is_enabled():
        logger.info("Window attachment unavailable; overlay will remain stationary")

    window.show_inactive()
    window.apply_overlay_attributes()

    try:
        if args.attach is not None:
            service.attach(args.attach)
        elif args.follow:
            service.follow_focused(True)
    except ProviderUnavailable as exc:
        logger.error("%s", exc)
        return 2

    channel: Optional[CommandChannel] = None
    if args.stdin_commands:
        channel = CommandChannel(sys.stdin, sys.stdout)
        channel.bind(service.handle_request)
        channel.closed.connect(app.quit)
        channel.start()

    exit_code = app.exec()
    service.detach()
    if channel is not None:
        channel.stop()
    logger.info("Overlay attach client exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
