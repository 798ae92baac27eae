"""Host-facing command interface for the attachment engine."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from overlay_attach.attach_types import AttachState, WindowRef
from overlay_attach.engine import AttachmentEngine

UNAVAILABLE_MESSAGE = "Window attachment requires X11 session on Linux."


class ProviderUnavailable(RuntimeError):
    """Raised when a command needs the X11 provider but attachment is disabled."""

    def __init__(self, message: str = UNAVAILABLE_MESSAGE) -> None:
        super().__init__(message)


class AttachCommandService:
    """Command surface consumed by the settings UI; never exposes watchers or the provider."""

    def __init__(self, engine: AttachmentEngine, logger: Optional[logging.Logger] = None) -> None:
        self._engine = engine
        self._logger = logger or logging.getLogger("OverlayAttach.Commands")
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
            "windowAttach.list": lambda payload: [ref.to_payload() for ref in self.list()],
            "windowAttach.attach": lambda payload: self.attach(_coerce_window_id(payload.get("id"))),
            "windowAttach.detach": lambda payload: self.detach(),
            "windowAttach.followFocused": lambda payload: self.follow_focused(_require_bool(payload.get("enable"), "enable")),
            "windowAttach.state": lambda payload: self.state().to_payload(),
        }

    def list(self) -> List[WindowRef]:
        self._require_enabled()
        return self._engine.list_windows()

    def attach(self, window_id: int) -> bool:
        self._require_enabled()
        return self._engine.attach(window_id)

    def detach(self) -> bool:
        return self._engine.detach()

    def follow_focused(self, enable: bool) -> bool:
        if enable:
            self._require_enabled()
        return self._engine.follow_focused(enable)

    def state(self) -> AttachState:
        return self._engine.state()

    def handle_request(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Dispatch a ``{"command": ...}`` payload and wrap the outcome for the host."""
        command = payload.get("command")
        handler = self._handlers.get(command) if isinstance(command, str) else None
        if handler is None:
            self._logger.debug("Ignoring unknown window attach command: %r", command)
            return {"ok": False, "error": f"unknown command: {command!r}"}
        try:
            result = handler(payload)
        except ProviderUnavailable as exc:
            return {"ok": False, "error": str(exc)}
        except (TypeError, ValueError) as exc:
            self._logger.debug("Rejected %s payload: %s", command, exc)
            return {"ok": False, "error": str(exc)}
        return {"ok": True, "result": result}

    def _require_enabled(self) -> None:
        if not self._engine.is_enabled():
            raise ProviderUnavailable()


def _require_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a boolean")
    return value


def _coerce_window_id(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("window id must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        token = value.strip()
        if token.lower().startswith("0x"):
            return int(token, 16)
        return int(token, 10)
    raise TypeError("window id must be an integer")
