from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "OverlayAttach"
LOG_DIR_NAME = "OverlayAttach"
LOG_FILE_NAME = "overlay-attach.log"
MAX_LOG_BYTES = 512 * 1024
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_logs_dir(log_dir_name: str = LOG_DIR_NAME) -> Path:
    """
    Resolve the directory to store attach logs.

    Strategy:
    - Use OVERLAY_ATTACH_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get("OVERLAY_ATTACH_LOG_DIR")
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / "overlay-attach" / "logs")
    candidates.append(cache_home / "overlay-attach" / "logs")
    candidates.append(Path.cwd() / "logs")

    for base in candidates:
        try:
            target = base / log_dir_name
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = MAX_LOG_BYTES,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(
    *,
    debug: bool = False,
    retention: int = 5,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Attach a single rotating handler to the package logger, replacing earlier ones."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_log_level(debug))
    logger.propagate = os.environ.get("OVERLAY_ATTACH_PROPAGATE_LOGS", "").lower() in {"1", "true", "yes", "on"}
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    target_dir = log_dir if log_dir is not None else resolve_logs_dir()
    try:
        handler = build_rotating_file_handler(target_dir, LOG_FILE_NAME, retention=retention, formatter=formatter)
    except OSError as exc:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
        logger.warning("Failed to initialise file logging in %s: %s", target_dir, exc)
        return logger
    logger.addHandler(handler)
    logger.debug(
        "Logging initialised: path=%s retention=%d max_bytes=%d",
        target_dir / LOG_FILE_NAME,
        retention,
        MAX_LOG_BYTES,
    )
    return logger
