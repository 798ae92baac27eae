"""Line-oriented JSON command channel that forwards host requests to the Qt thread."""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional, TextIO

from PyQt6.QtCore import QObject, pyqtSignal

_LOGGER = logging.getLogger("OverlayAttach.Channel")


def parse_command_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one request line; blank or malformed lines yield None."""
    text = line.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        _LOGGER.debug("Discarding malformed command line: %s", exc)
        return None
    if not isinstance(payload, dict):
        _LOGGER.debug("Discarding non-object command payload: %r", payload)
        return None
    return payload


def format_response(request: Mapping[str, Any], response: Mapping[str, Any]) -> str:
    message: Dict[str, Any] = dict(response)
    if "requestId" in request:
        message["requestId"] = request["requestId"]
    return json.dumps(message, sort_keys=True)


class CommandChannel(QObject):
    """Reads requests on a background thread and emits them on the Qt thread.

    Responses are written from the Qt thread, so every engine call stays on the
    GUI event loop.
    """

    request_received = pyqtSignal(dict)
    closed = pyqtSignal()

    def __init__(self, stream_in: TextIO, stream_out: TextIO) -> None:
        super().__init__()
        self._in = stream_in
        self._out = stream_out
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def bind(self, handler: Callable[[Mapping[str, Any]], Mapping[str, Any]]) -> None:
        def _on_request(request: Dict[str, Any]) -> None:
            self.write_response(request, handler(request))

        self.request_received.connect(_on_request)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._thread_main, name="OverlayAttach-Commands", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._thread = None

    def write_response(self, request: Mapping[str, Any], response: Mapping[str, Any]) -> None:
        try:
            self._out.write(format_response(request, response) + "\n")
            self._out.flush()
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Failed to write command response: %s", exc)

    def _thread_main(self) -> None:
        for line in self._in:
            if self._stop_event.is_set():
                break
            payload = parse_command_line(line)
            if payload is not None:
                self.request_received.emit(payload)
        self.closed.emit()
