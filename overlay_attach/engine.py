"""Attachment state machine that keeps the overlay glued to a target window."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from overlay_attach.attach_types import (
    DETACHED_STATE,
    AttachMode,
    AttachState,
    BoundsTuple,
    MappedGeometry,
    WindowRef,
)
from overlay_attach.poll_timers import AfterCancelFn, AfterFn, clamp_poll_ms
from overlay_attach.visibility import OverlayFn, VisibilitySynchronizer
from overlay_attach.watchers import CancelFn, FocusWatcher, GeometryWatcher
from overlay_attach.window_query import WindowQueryProvider

DEFAULT_POLL_MS = 100


class AttachmentEngine:
    """Owns the attachment state and the pollers that feed it.

    Transitions:

    * ``detached -> attached(id)`` via :meth:`attach`; the overlay bounds are
      captured so :meth:`detach` can put them back.
    * ``detached|attached -> follow`` via :meth:`follow_focused`.
    * ``follow -> follow(id)`` whenever the focused window changes (retarget);
      the follow poll keeps running and the mode never leaves ``follow``.
    * ``* -> detached`` via :meth:`detach`, which always succeeds.

    A geometry miss hides the overlay but keeps the attachment; the geometry
    poll is restarted so the target is re-reported when it comes back.

    Every transition cancels the pollers it replaces before the new state is
    assigned, so a callback from an old poller can never touch the new state.
    """

    def __init__(
        self,
        provider: Optional[WindowQueryProvider],
        overlay_fn: OverlayFn,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        primary_bounds_fn: Callable[[], BoundsTuple],
        poll_ms: int = DEFAULT_POLL_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._provider = provider
        self._overlay_fn = overlay_fn
        self._primary_bounds_fn = primary_bounds_fn
        self._poll_ms = clamp_poll_ms(poll_ms)
        self._logger = logger or logging.getLogger("OverlayAttach.Engine")
        self._state: AttachState = DETACHED_STATE
        self._synchronizer = VisibilitySynchronizer(overlay_fn, log_fn=self._logger.debug)
        self._geometry_watcher: Optional[GeometryWatcher] = None
        self._focus_watcher: Optional[FocusWatcher] = None
        if provider is not None:
            self._geometry_watcher = GeometryWatcher(
                provider, after=after, after_cancel=after_cancel, logger=self._logger
            )
            self._focus_watcher = FocusWatcher(provider, after=after, after_cancel=after_cancel)
        self._stop_geometry: Optional[CancelFn] = None
        self._stop_focus: Optional[CancelFn] = None
        self._stop_follow: Optional[CancelFn] = None
        self._pre_attach_bounds: Optional[BoundsTuple] = None
        self._follow_last_id: Optional[int] = None
        self._geometry_seen = False

    # Queries ---------------------------------------------------------------

    @property
    def poll_ms(self) -> int:
        return self._poll_ms

    @property
    def synchronizer(self) -> VisibilitySynchronizer:
        return self._synchronizer

    def is_enabled(self) -> bool:
        return self._provider is not None

    def state(self) -> AttachState:
        return self._state

    def list_windows(self) -> List[WindowRef]:
        if self._provider is None:
            return []
        return self._provider.list_windows()

    # Transitions -----------------------------------------------------------

    def attach(self, window_id: int) -> bool:
        if self._provider is None:
            return False
        overlay = self._overlay_fn()
        if overlay is None:
            self._logger.warning("Cannot attach to window %s: overlay window unavailable", window_id)
            return False
        if self._state.mode is AttachMode.DETACHED:
            self._pre_attach_bounds = overlay.get_bounds()
            self._logger.debug("Captured pre-attach overlay bounds %s", self._pre_attach_bounds)
        self._stop_all()
        self._start_target(window_id, AttachMode.ATTACHED)
        self._logger.info("Attached overlay to window %s (poll=%dms)", window_id, self._poll_ms)
        return True

    def follow_focused(self, enable: bool) -> bool:
        if not enable:
            return self.detach()
        if self._provider is None or self._focus_watcher is None:
            return False
        if self._state.mode is AttachMode.DETACHED:
            overlay = self._overlay_fn()
            if overlay is not None:
                self._pre_attach_bounds = overlay.get_bounds()
                self._logger.debug("Captured pre-attach overlay bounds %s", self._pre_attach_bounds)
        self._stop_all()
        self._synchronizer.reset()
        self._follow_last_id = None
        self._state = AttachState(mode=AttachMode.FOLLOW)
        self._logger.info("Following focused window (poll=%dms)", self._poll_ms)
        self._stop_follow = self._focus_watcher.watch(self._poll_ms, self._on_follow_active, immediate=True)
        return True

    def detach(self) -> bool:
        self._stop_all()
        previous = self._state
        self._state = DETACHED_STATE
        if self._provider is None:
            return True
        self._restore_overlay_bounds()
        if previous.mode is not AttachMode.DETACHED:
            self._logger.info("Detached overlay (was %s, target=%s)", previous.mode.value, previous.target_id)
        return True

    # Internal helpers ------------------------------------------------------

    def _start_target(self, window_id: int, mode: AttachMode) -> None:
        if self._geometry_watcher is None or self._focus_watcher is None:
            return
        self._synchronizer.reset()
        self._state = AttachState(mode=mode, target_id=window_id, last_geometry=None)
        self._watch_geometry(window_id)
        self._stop_focus = self._focus_watcher.watch(
            self._poll_ms,
            lambda active: self._on_focus_change(window_id, active),
        )

    def _watch_geometry(self, window_id: int) -> None:
        if self._geometry_watcher is None:
            return
        self._geometry_seen = False
        self._stop_geometry = self._geometry_watcher.watch(
            window_id,
            self._poll_ms,
            self._on_geometry_change,
            self._on_geometry_missing,
        )

    def _retarget(self, window_id: int) -> None:
        self._stop_target_watchers()
        self._start_target(window_id, AttachMode.FOLLOW)
        self._logger.info("Follow mode retargeted overlay to window %s", window_id)

    def _on_follow_active(self, active: Optional[int]) -> None:
        if not active:
            return
        if active == self._follow_last_id:
            return
        self._follow_last_id = active
        self._retarget(active)

    def _on_geometry_change(self, geometry: MappedGeometry) -> None:
        self._geometry_seen = True
        self._state = replace(self._state, last_geometry=geometry.geometry)
        self._logger.debug(
            "Target geometry: pos=(%d,%d) size=%dx%d mapped=%s",
            geometry.x,
            geometry.y,
            geometry.width,
            geometry.height,
            geometry.mapped,
        )
        self._synchronizer.update_geometry(geometry)

    def _on_geometry_missing(self) -> None:
        self._synchronizer.mark_missing()
        target_id = self._state.target_id
        if not self._geometry_seen or target_id is None:
            return
        # A fresh watcher re-emits the target even if it returns unchanged.
        if self._stop_geometry is not None:
            self._stop_geometry()
        self._watch_geometry(target_id)

    def _on_focus_change(self, window_id: int, active: Optional[int]) -> None:
        self._synchronizer.set_focused(active == window_id)

    def _restore_overlay_bounds(self) -> None:
        if self._overlay_fn() is None:
            return
        bounds = self._pre_attach_bounds
        if bounds is None:
            bounds = self._primary_bounds_fn()
        self._synchronizer.restore(bounds)

    def _stop_target_watchers(self) -> None:
        if self._stop_geometry is not None:
            self._stop_geometry()
            self._stop_geometry = None
        if self._stop_focus is not None:
            self._stop_focus()
            self._stop_focus = None

    def _stop_all(self) -> None:
        self._stop_target_watchers()
        if self._stop_follow is not None:
            self._stop_follow()
            self._stop_follow = None
