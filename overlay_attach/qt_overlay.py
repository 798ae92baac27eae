"""PyQt6 overlay window and QTimer-backed scheduling for the attachment engine."""
from __future__ import annotations

import logging
import subprocess
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QRect, Qt, QTimer
from PyQt6.QtGui import QColor, QGuiApplication, QPainter, QPen
from PyQt6.QtWidgets import QWidget

from overlay_attach.attach_types import BoundsTuple
from overlay_attach.config import DEFAULT_OVERLAY_TITLE

_LOGGER = logging.getLogger("OverlayAttach.Overlay")
_FALLBACK_BOUNDS: BoundsTuple = (0, 0, 1280, 720)


class QtScheduler:
    """``after``/``after_cancel`` pair built on single-shot QTimers."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent

    def after(self, delay_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(delay_ms)))
        timer.timeout.connect(callback)
        timer.timeout.connect(timer.deleteLater)
        timer.start()
        return timer

    def after_cancel(self, handle: object) -> None:
        if not isinstance(handle, QTimer):
            return
        try:
            handle.stop()
            handle.deleteLater()
        except RuntimeError as exc:
            # Timer already fired and was deleted on the C++ side.
            _LOGGER.debug("Timer cancel ignored: %s", exc)


def primary_screen_bounds() -> BoundsTuple:
    screen = QGuiApplication.primaryScreen()
    if screen is None:
        return _FALLBACK_BOUNDS
    geometry = screen.geometry()
    return (geometry.x(), geometry.y(), geometry.width(), geometry.height())


class AttachOverlayWindow(QWidget):
    """Frameless, click-through, always-on-top overlay moved by the engine."""

    def __init__(self, title: str = DEFAULT_OVERLAY_TITLE, *, outline: bool = False) -> None:
        super().__init__()
        self._outline = outline
        self._sticky_window_id: Optional[int] = None
        self.setWindowTitle(title)
        self.setWindowFlags(self._desired_flags())
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.setGeometry(QRect(*primary_screen_bounds()))

    # OverlaySurface --------------------------------------------------------

    def get_bounds(self) -> BoundsTuple:
        rect = self.geometry()
        return (rect.x(), rect.y(), rect.width(), rect.height())

    def set_bounds(self, bounds: BoundsTuple) -> None:
        self.setGeometry(QRect(*bounds))

    def is_visible(self) -> bool:
        return self.isVisible()

    def show_inactive(self) -> None:
        self.show()
        self._ensure_sticky()

    def apply_overlay_attributes(self) -> None:
        desired = self._desired_flags()
        if self.windowFlags() != desired:
            # setWindowFlags hides a visible widget; show it again afterwards.
            was_visible = self.isVisible()
            self.setWindowFlags(desired)
            if was_visible:
                self.show()
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        window = self.windowHandle()
        if window is not None and hasattr(Qt.WindowType, "WindowTransparentForInput"):
            window.setFlag(Qt.WindowType.WindowTransparentForInput, True)
        if self.isVisible():
            self.raise_()
            self._ensure_sticky()

    # Qt overrides ----------------------------------------------------------

    def paintEvent(self, event) -> None:  # type: ignore[override]
        if not self._outline:
            return
        painter = QPainter(self)
        try:
            painter.setPen(QPen(QColor(0, 200, 255, 200), 2))
            painter.drawRect(self.rect().adjusted(1, 1, -2, -2))
        finally:
            painter.end()

    # Internal helpers ------------------------------------------------------

    @staticmethod
    def _desired_flags() -> Qt.WindowType:
        return (
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
            | Qt.WindowType.WindowDoesNotAcceptFocus
        )

    def _ensure_sticky(self) -> None:
        """Ask the window manager to keep the overlay on every workspace."""
        window_id = int(self.winId())
        if window_id == self._sticky_window_id:
            return
        try:
            result = subprocess.run(
                ["wmctrl", "-i", "-r", hex(window_id), "-b", "add,sticky,above"],
                check=False,
                capture_output=True,
                text=True,
                timeout=1.0,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            _LOGGER.debug("Unable to mark overlay sticky: %s", exc)
            return
        if result.returncode != 0:
            _LOGGER.debug("wmctrl sticky request returned status %s", result.returncode)
            return
        self._sticky_window_id = window_id
