"""X11 window introspection via wmctrl, xdotool and xwininfo."""
from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
from typing import List, Optional, Protocol, Sequence, Set

from overlay_attach.attach_types import MappedGeometry, WindowRef

_WMCTRL_LINE = re.compile(r"^(0x[\da-fA-F]+)\s+\S+\s+\S+\s+([^\s]+)\s+(.*)$")
_HEX_ID = re.compile(r"^0x[0-9a-fA-F]+$")
_ABS_X = re.compile(r"X:\s*(-?\d+)")
_ABS_Y = re.compile(r"Y:\s*(-?\d+)")
_WIDTH = re.compile(r"Width:\s*(\d+)")
_HEIGHT = re.compile(r"Height:\s*(\d+)")

DEFAULT_TOOL_TIMEOUT = 1.0


class ToolExecutionFailure(Exception):
    """An introspection tool was missing, timed out or exited non-zero."""


class ParseFailure(Exception):
    """An introspection tool produced output we could not interpret."""


class WindowQueryProvider(Protocol):
    """Read-only window system queries used by the watchers and engine."""

    def list_windows(self) -> List[WindowRef]:
        ...

    def get_active_window(self) -> Optional[int]:
        ...

    def get_geometry(self, window_id: int) -> Optional[MappedGeometry]:
        ...


def session_type() -> str:
    return (os.environ.get("OVERLAY_ATTACH_SESSION_TYPE") or os.environ.get("XDG_SESSION_TYPE") or "").lower()


def is_x11_session() -> bool:
    return sys.platform.startswith("linux") and session_type() == "x11"


def create_window_query_provider(
    logger: logging.Logger,
    *,
    enabled: Optional[bool] = None,
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT,
) -> Optional[WindowQueryProvider]:
    """Build the X11 provider, or return None when attachment must stay disabled."""

    if enabled is False:
        logger.info("Window attachment disabled by settings")
        return None
    if not is_x11_session():
        logger.info(
            "Window attachment requires an X11 session on Linux (platform=%s session=%s); attachment disabled",
            sys.platform,
            session_type() or "unknown",
        )
        return None
    return X11WindowQuery(logger, tool_timeout=tool_timeout)


def parse_hex_id(text: str) -> Optional[int]:
    token = text.strip()
    if not _HEX_ID.match(token):
        return None
    return int(token, 16)


def parse_decimal_id(text: str) -> Optional[int]:
    token = text.strip()
    if not token:
        return None
    try:
        return int(token, 10)
    except ValueError:
        return None


def parse_window_list(output: str) -> List[WindowRef]:
    """Parse ``wmctrl -l -x`` output into window references, skipping unknown lines."""

    windows: List[WindowRef] = []
    for line in output.split("\n"):
        if not line:
            continue
        match = _WMCTRL_LINE.match(line)
        if match is None:
            continue
        window_id = parse_hex_id(match.group(1))
        if window_id is None:
            continue
        windows.append(WindowRef(id=window_id, title=match.group(3) or "", wm_class=match.group(2)))
    return windows


def parse_geometry(output: str) -> Optional[MappedGeometry]:
    """Parse ``xwininfo -id`` output; degenerate sizes yield None."""

    x = y = width = height = 0
    mapped = False
    for raw_line in output.split("\n"):
        line = raw_line.strip()
        if line.startswith("Absolute upper-left X:"):
            match = _ABS_X.search(line)
            if match:
                x = int(match.group(1))
        elif line.startswith("Absolute upper-left Y:"):
            match = _ABS_Y.search(line)
            if match:
                y = int(match.group(1))
        elif line.startswith("Width:"):
            match = _WIDTH.search(line)
            if match:
                width = int(match.group(1))
        elif line.startswith("Height:"):
            match = _HEIGHT.search(line)
            if match:
                height = int(match.group(1))
        elif line.startswith("Map State:"):
            mapped = "IsViewable" in line
    if width <= 0 or height <= 0:
        return None
    return MappedGeometry(x=x, y=y, width=width, height=height, mapped=mapped)


class X11WindowQuery:
    """Best-effort provider; every failure degrades to None or an empty list."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        tool_timeout: float = DEFAULT_TOOL_TIMEOUT,
        wmctrl: str = "wmctrl",
        xdotool: str = "xdotool",
        xwininfo: str = "xwininfo",
    ) -> None:
        self._logger = logger
        self._tool_timeout = tool_timeout
        self._wmctrl = wmctrl
        self._xdotool = xdotool
        self._xwininfo = xwininfo
        self._missing_tools: Set[str] = set()

    def list_windows(self) -> List[WindowRef]:
        try:
            output = self._run([self._wmctrl, "-l", "-x"])
        except ToolExecutionFailure as exc:
            self._logger.debug("Window enumeration failed: %s", exc)
            return []
        return parse_window_list(output)

    def get_active_window(self) -> Optional[int]:
        try:
            output = self._run([self._xdotool, "getactivewindow"])
            active = parse_decimal_id(output)
            if active is None:
                raise ParseFailure(f"unexpected xdotool output {output.strip()!r}")
        except (ToolExecutionFailure, ParseFailure) as exc:
            self._logger.debug("Active window query failed: %s", exc)
            return None
        return active

    def get_geometry(self, window_id: int) -> Optional[MappedGeometry]:
        try:
            output = self._run([self._xwininfo, "-id", str(window_id)])
            geometry = parse_geometry(output)
            if geometry is None:
                raise ParseFailure(f"no usable geometry for window {window_id}")
        except (ToolExecutionFailure, ParseFailure) as exc:
            self._logger.debug("Geometry query failed: %s", exc)
            return None
        return geometry

    # Internal helpers -------------------------------------------------

    def _run(self, command: Sequence[str]) -> str:
        binary = command[0]
        try:
            result = subprocess.run(
                list(command),
                check=False,
                capture_output=True,
                text=True,
                timeout=self._tool_timeout,
            )
        except FileNotFoundError as exc:
            if binary not in self._missing_tools:
                self._missing_tools.add(binary)
                self._logger.warning("%s binary not found; window attachment cannot query X11", binary)
            raise ToolExecutionFailure(f"{binary} not found") from exc
        except (subprocess.SubprocessError, OSError) as exc:
            raise ToolExecutionFailure(f"{binary} invocation failed: {exc}") from exc
        if result.returncode != 0:
            raise ToolExecutionFailure(f"{binary} returned non-zero status {result.returncode}")
        return result.stdout or ""
