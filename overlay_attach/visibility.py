"""Show/hide decisions and idempotent bounds application for the overlay."""
from __future__ import annotations

from typing import Callable, Optional, Protocol

from overlay_attach.attach_types import BoundsTuple, Geometry, MappedGeometry


class OverlaySurface(Protocol):
    """Minimal window operations the synchronizer needs; kept free of Qt types."""

    def get_bounds(self) -> BoundsTuple:
        ...

    def set_bounds(self, bounds: BoundsTuple) -> None:
        ...

    def is_visible(self) -> bool:
        ...

    def show_inactive(self) -> None:
        ...

    def hide(self) -> None:
        ...

    def apply_overlay_attributes(self) -> None:
        """Assert always-on-top, all-workspaces and click-through."""
        ...


OverlayFn = Callable[[], Optional[OverlaySurface]]


def should_show_overlay(mapped: bool, focused_target: bool) -> bool:
    return mapped and focused_target


def _noop_log(message: str, *args: object) -> None:
    return None


class VisibilitySynchronizer:
    """Combines mapped state and focus match into a single visibility decision."""

    def __init__(self, overlay_fn: OverlayFn, *, log_fn: Optional[Callable[..., None]] = None) -> None:
        self._overlay_fn = overlay_fn
        self._log = log_fn or _noop_log
        self._mapped = False
        self._focused_target = False
        self._geometry: Optional[Geometry] = None
        self._last_state: Optional[bool] = None

    @property
    def mapped(self) -> bool:
        return self._mapped

    @property
    def focused_target(self) -> bool:
        return self._focused_target

    def reset(self) -> None:
        self._mapped = False
        self._focused_target = False
        self._geometry = None

    def update_geometry(self, geometry: MappedGeometry) -> None:
        self._geometry = geometry.geometry
        self._mapped = geometry.mapped
        self.sync()

    def set_focused(self, focused_target: bool) -> None:
        self._focused_target = focused_target
        self.sync()

    def mark_missing(self) -> None:
        self._mapped = False
        overlay = self._overlay_fn()
        if overlay is not None and overlay.is_visible():
            overlay.hide()
        self._record(False, "target missing")

    def sync(self) -> bool:
        overlay = self._overlay_fn()
        show = should_show_overlay(self._mapped, self._focused_target)
        if overlay is None:
            return show
        if show:
            target = self._geometry.as_tuple() if self._geometry is not None else None
            if target is not None and overlay.get_bounds() != target:
                overlay.set_bounds(target)
                overlay.apply_overlay_attributes()
                self._log("Overlay bounds set to %s", target)
            if not overlay.is_visible():
                overlay.show_inactive()
        elif overlay.is_visible():
            overlay.hide()
        self._record(show, f"mapped={self._mapped} focused={self._focused_target}")
        return show

    def restore(self, bounds: BoundsTuple) -> None:
        """Put the overlay back on ``bounds`` and make it visible again."""
        self.reset()
        overlay = self._overlay_fn()
        if overlay is None:
            return
        if overlay.get_bounds() != bounds:
            overlay.set_bounds(bounds)
            self._log("Overlay bounds restored to %s", bounds)
        overlay.apply_overlay_attributes()
        if not overlay.is_visible():
            overlay.show_inactive()
        self._record(True, "restored")

    def _record(self, shown: bool, reason: str) -> None:
        if self._last_state != shown:
            self._log("Overlay visibility set to %s; %s", "visible" if shown else "hidden", reason)
            self._last_state = shown
