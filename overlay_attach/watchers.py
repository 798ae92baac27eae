"""Edge-triggered pollers for window geometry and the active window."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from overlay_attach.attach_types import MappedGeometry
from overlay_attach.poll_timers import AfterCancelFn, AfterFn, RepeatingPoll
from overlay_attach.window_query import WindowQueryProvider

CancelFn = Callable[[], None]

_UNSET = object()


class GeometryWatcher:
    """Polls one window's geometry and reports changes and misses."""

    def __init__(
        self,
        provider: WindowQueryProvider,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._provider = provider
        self._after = after
        self._after_cancel = after_cancel
        self._logger = logger or logging.getLogger("OverlayAttach.Watch")

    def watch(
        self,
        window_id: int,
        interval_ms: int,
        on_change: Callable[[MappedGeometry], None],
        on_missing: Callable[[], None],
    ) -> CancelFn:
        last: Optional[MappedGeometry] = None
        missing_logged = False
        poll: RepeatingPoll

        def _tick() -> None:
            nonlocal last, missing_logged
            geometry = self._provider.get_geometry(window_id)
            if not poll.alive:
                return
            if geometry is None:
                if not missing_logged:
                    self._logger.debug("Window %s geometry unavailable", window_id)
                    missing_logged = True
                on_missing()
                return
            missing_logged = False
            if geometry != last:
                last = geometry
                on_change(geometry)

        poll = RepeatingPoll(interval_ms, _tick, after=self._after, after_cancel=self._after_cancel)
        poll.start()
        return poll.cancel


class FocusWatcher:
    """Polls the active window id; ``None`` is delivered like any other id."""

    def __init__(
        self,
        provider: WindowQueryProvider,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
    ) -> None:
        self._provider = provider
        self._after = after
        self._after_cancel = after_cancel

    def watch(
        self,
        interval_ms: int,
        on_change: Callable[[Optional[int]], None],
        *,
        immediate: bool = False,
    ) -> CancelFn:
        last: object = _UNSET
        poll: RepeatingPoll

        def _tick() -> None:
            nonlocal last
            active = self._provider.get_active_window()
            if not poll.alive:
                return
            if active != last:
                last = active
                on_change(active)

        poll = RepeatingPoll(interval_ms, _tick, after=self._after, after_cancel=self._after_cancel)
        poll.start(immediate=immediate)
        return poll.cancel
