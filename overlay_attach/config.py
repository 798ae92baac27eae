"""Bootstrap settings for the overlay attach client."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from overlay_attach.poll_timers import clamp_poll_ms

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_SETTINGS_PATH = PACKAGE_DIR.parent / "overlay_attach_settings.json"
DEFAULT_OVERLAY_TITLE = "AttachOverlay"

LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20
TOOL_TIMEOUT_MIN = 0.1
TOOL_TIMEOUT_MAX = 5.0

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AttachSettings:
    """Values used to bootstrap the engine before the host sends commands."""

    poll_ms: int = 100
    enabled: Optional[bool] = None
    tool_timeout: float = 1.0
    overlay_title: str = DEFAULT_OVERLAY_TITLE
    log_retention: int = 5
    debug: bool = False


def _coerce_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _TRUTHY:
        return True
    if token in _FALSY:
        return False
    return None


def _coerce_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _coerce_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _normalise(settings: AttachSettings) -> AttachSettings:
    title = settings.overlay_title.strip() if isinstance(settings.overlay_title, str) else ""
    return replace(
        settings,
        poll_ms=clamp_poll_ms(settings.poll_ms),
        tool_timeout=max(TOOL_TIMEOUT_MIN, min(TOOL_TIMEOUT_MAX, settings.tool_timeout)),
        overlay_title=title or DEFAULT_OVERLAY_TITLE,
        log_retention=max(LOG_RETENTION_MIN, min(LOG_RETENTION_MAX, settings.log_retention)),
    )


def settings_from_mapping(data: Mapping[str, Any]) -> AttachSettings:
    defaults = AttachSettings()
    return _normalise(
        AttachSettings(
            poll_ms=_coerce_int(data.get("poll_ms"), defaults.poll_ms),
            enabled=_coerce_bool(data.get("enabled")),
            tool_timeout=_coerce_float(data.get("tool_timeout"), defaults.tool_timeout),
            overlay_title=str(data.get("overlay_title") or defaults.overlay_title),
            log_retention=_coerce_int(data.get("log_retention"), defaults.log_retention),
            debug=bool(_coerce_bool(data.get("debug"))),
        )
    )


def apply_env_overrides(settings: AttachSettings, env: Optional[Mapping[str, str]] = None) -> AttachSettings:
    """Environment variables win over the settings file."""
    env = os.environ if env is None else env
    updates: Dict[str, Any] = {}
    poll_raw = env.get("OVERLAY_ATTACH_POLL_MS")
    if poll_raw:
        updates["poll_ms"] = _coerce_int(poll_raw, settings.poll_ms)
    enabled = _coerce_bool(env.get("OVERLAY_ATTACH_ENABLED"))
    if enabled is not None:
        updates["enabled"] = enabled
    timeout_raw = env.get("OVERLAY_ATTACH_TOOL_TIMEOUT")
    if timeout_raw:
        updates["tool_timeout"] = _coerce_float(timeout_raw, settings.tool_timeout)
    debug = _coerce_bool(env.get("OVERLAY_ATTACH_DEBUG"))
    if debug is not None:
        updates["debug"] = debug
    if not updates:
        return settings
    return _normalise(replace(settings, **updates))


def load_attach_settings(settings_path: Path, env: Optional[Mapping[str, str]] = None) -> AttachSettings:
    """Read settings JSON if it exists, then layer environment overrides on top."""
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return apply_env_overrides(AttachSettings(), env)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return apply_env_overrides(AttachSettings(), env)
    if not isinstance(data, dict):
        return apply_env_overrides(AttachSettings(), env)
    return apply_env_overrides(settings_from_mapping(data), env)
