from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from overlay_attach.attach_types import BoundsTuple, MappedGeometry, WindowRef


class AfterHarness:
    """Manual scheduler: nothing runs until ``tick`` is called."""

    def __init__(self) -> None:
        self.pending: Dict[int, Tuple[int, Callable[[], None]]] = {}
        self.scheduled: List[Tuple[int, int]] = []
        self.cancelled: List[int] = []
        self._next = 0

    def after(self, ms: int, cb: Callable[[], None]) -> int:
        handle = self._next
        self._next += 1
        self.pending[handle] = (ms, cb)
        self.scheduled.append((handle, ms))
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)  # type: ignore[arg-type]
        self.pending.pop(handle, None)  # type: ignore[arg-type]

    def tick(self, count: int = 1) -> None:
        """Fire every callback that was pending when each tick started."""
        for _ in range(count):
            for handle in list(self.pending):
                entry = self.pending.pop(handle, None)
                if entry is not None:
                    entry[1]()


class FakeProvider:
    def __init__(self) -> None:
        self.geometries: Dict[int, Optional[MappedGeometry]] = {}
        self.active: Optional[int] = None
        self.windows: List[WindowRef] = []
        self.geometry_calls: List[int] = []
        self.active_calls = 0
        self.on_get_geometry: Optional[Callable[[int], None]] = None

    def list_windows(self) -> List[WindowRef]:
        return list(self.windows)

    def get_active_window(self) -> Optional[int]:
        self.active_calls += 1
        return self.active

    def get_geometry(self, window_id: int) -> Optional[MappedGeometry]:
        self.geometry_calls.append(window_id)
        if self.on_get_geometry is not None:
            self.on_get_geometry(window_id)
        return self.geometries.get(window_id)


class FakeOverlay:
    def __init__(self, bounds: BoundsTuple = (0, 0, 1920, 1080), visible: bool = True) -> None:
        self.bounds = bounds
        self.visible = visible
        self.bounds_writes: List[BoundsTuple] = []
        self.attribute_calls = 0
        self.show_calls = 0
        self.hide_calls = 0
        self.events: List[str] = []

    def get_bounds(self) -> BoundsTuple:
        return self.bounds

    def set_bounds(self, bounds: BoundsTuple) -> None:
        self.bounds = bounds
        self.bounds_writes.append(bounds)
        self.events.append("bounds")

    def is_visible(self) -> bool:
        return self.visible

    def show_inactive(self) -> None:
        self.visible = True
        self.show_calls += 1
        self.events.append("show")

    def hide(self) -> None:
        self.visible = False
        self.hide_calls += 1
        self.events.append("hide")

    def apply_overlay_attributes(self) -> None:
        self.attribute_calls += 1
        self.events.append("attributes")


def mapped(x: int, y: int, width: int, height: int, is_mapped: bool = True) -> MappedGeometry:
    return MappedGeometry(x=x, y=y, width=width, height=height, mapped=is_mapped)
