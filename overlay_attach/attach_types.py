"""Value types shared by the attachment engine and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

BoundsTuple = Tuple[int, int, int, int]


@dataclass(frozen=True, slots=True)
class WindowRef:
    """Identity record returned by window enumeration."""

    id: int
    title: str
    wm_class: str

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "wmClass": self.wm_class}


@dataclass(frozen=True, slots=True)
class Geometry:
    """Absolute screen-space rectangle."""

    x: int
    y: int
    width: int
    height: int

    def as_tuple(self) -> BoundsTuple:
        return (self.x, self.y, self.width, self.height)

    def to_payload(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class MappedGeometry:
    """Window geometry plus whether the window is currently viewable."""

    x: int
    y: int
    width: int
    height: int
    mapped: bool

    @property
    def geometry(self) -> Geometry:
        return Geometry(self.x, self.y, self.width, self.height)


class AttachMode(str, Enum):
    DETACHED = "detached"
    ATTACHED = "attached"
    FOLLOW = "follow"


@dataclass(frozen=True, slots=True)
class AttachState:
    """Snapshot of the engine's attachment state.

    Instances are immutable; the engine swaps in a new value on every transition.
    """

    mode: AttachMode = AttachMode.DETACHED
    target_id: Optional[int] = None
    last_geometry: Optional[Geometry] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "targetId": self.target_id,
            "lastGeometry": self.last_geometry.to_payload() if self.last_geometry is not None else None,
        }


DETACHED_STATE = AttachState()
