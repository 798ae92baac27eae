"""Smoke check for overlay drift while a target window is moved and resized.

Usage:
    python -m overlay_attach.qa_smoke --id <windowId> [--cycles 5] [--pause 250]
    python -m overlay_attach.qa_smoke --active

The overlay client must already be running and attached to the target. The
overlay window is located by title, the target is pushed through a fixed
sequence of move/resize steps, and after every step both geometries are sampled
until they agree within one pixel or the deadline passes.

Requires wmctrl, xdotool and xwininfo.
"""
from __future__ import annotations

import argparse
import logging
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from overlay_attach.attach_types import BoundsTuple
from overlay_attach.config import DEFAULT_OVERLAY_TITLE
from overlay_attach.window_query import X11WindowQuery

_LOGGER = logging.getLogger("OverlayAttach.QA")

# (dx, dy, dw, dh) relative to the target's starting geometry.
MOVES: Tuple[Tuple[int, int, int, int], ...] = (
    (0, 0, 0, 0),
    (100, 80, 120, 60),
    (-150, 120, 240, 120),
    (200, -100, -160, -100),
    (0, 0, 0, 0),
)
MIN_SIZE = 200
ALIGN_TOLERANCE_PX = 1
DEADLINE_MS = 1500
SAMPLE_INTERVAL_S = 0.02


@dataclass
class DriftReport:
    max_drift: int = 0
    max_latency_ms: float = 0.0
    missed: int = 0
    steps: int = 0

    def record(self, aligned: bool, step_drift: int, latency_ms: float) -> None:
        self.steps += 1
        self.max_drift = max(self.max_drift, step_drift)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        if not aligned:
            self.missed += 1


def apply_move(base: BoundsTuple, move: Tuple[int, int, int, int]) -> BoundsTuple:
    x, y, width, height = base
    dx, dy, dw, dh = move
    return (x + dx, y + dy, max(MIN_SIZE, width + dw), max(MIN_SIZE, height + dh))


def max_drift(target: BoundsTuple, overlay: BoundsTuple) -> int:
    return max(abs(a - b) for a, b in zip(target, overlay))


def measure_alignment(
    sample_fn: Callable[[], Tuple[BoundsTuple, BoundsTuple]],
    *,
    deadline_ms: int = DEADLINE_MS,
    interval_s: float = SAMPLE_INTERVAL_S,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[bool, int, float]:
    """Sample until drift is within tolerance; return (aligned, worst drift, latency ms)."""
    start = clock()
    deadline = start + deadline_ms / 1000.0
    step_max = 0
    aligned = False
    while clock() < deadline:
        target, overlay = sample_fn()
        drift = max_drift(target, overlay)
        step_max = max(step_max, drift)
        if drift <= ALIGN_TOLERANCE_PX:
            aligned = True
            break
        sleep(interval_s)
    return aligned, step_max, (clock() - start) * 1000.0


class X11Harness:
    """Thin wrapper over the X11 tools used by the smoke check."""

    def __init__(self, query: X11WindowQuery) -> None:
        self._query = query

    def geometry(self, window_id: int) -> BoundsTuple:
        geometry = self._query.get_geometry(window_id)
        if geometry is None:
            return (0, 0, 0, 0)
        return (geometry.x, geometry.y, geometry.width, geometry.height)

    def active_window(self) -> Optional[int]:
        return self._query.get_active_window()

    def find_overlay(self, title: str) -> Optional[int]:
        for ref in self._query.list_windows():
            if title in ref.title:
                return ref.id
        return None

    def move_and_resize(self, window_id: int, bounds: BoundsTuple) -> None:
        x, y, width, height = bounds
        subprocess.run(["xdotool", "windowmove", str(window_id), str(x), str(y)], check=True, timeout=2.0)
        subprocess.run(["xdotool", "windowsize", str(window_id), str(width), str(height)], check=True, timeout=2.0)


def run_cycles(
    harness: X11Harness,
    target_id: int,
    overlay_id: int,
    *,
    cycles: int,
    pause_ms: int,
    moves: Sequence[Tuple[int, int, int, int]] = MOVES,
) -> DriftReport:
    report = DriftReport()
    base = harness.geometry(target_id)
    for _cycle in range(max(0, cycles)):
        for move in moves:
            harness.move_and_resize(target_id, apply_move(base, move))
            aligned, step_drift, latency = measure_alignment(
                lambda: (harness.geometry(target_id), harness.geometry(overlay_id))
            )
            report.record(aligned, step_drift, latency)
            time.sleep(max(0, pause_ms) / 1000.0)
    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Measure overlay drift against an X11 target window")
    parser.add_argument("--id", type=int, help="Target window id (decimal)")
    parser.add_argument("--active", action="store_true", help="Use the currently active window as the target")
    parser.add_argument("--cycles", type=int, default=5)
    parser.add_argument("--pause", type=int, default=250, help="Pause between steps in milliseconds")
    parser.add_argument("--overlay-title", default=DEFAULT_OVERLAY_TITLE)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    harness = X11Harness(X11WindowQuery(_LOGGER))

    target_id = args.id
    if args.active or not target_id:
        target_id = harness.active_window()
    if not target_id:
        print("No target window id provided or found as active.", file=sys.stderr)
        return 1
    overlay_id = harness.find_overlay(args.overlay_title)
    if not overlay_id:
        print(f"Could not find overlay window (title '{args.overlay_title}').", file=sys.stderr)
        return 2

    print(f"Using target id={target_id}, overlay id={overlay_id}")
    try:
        report = run_cycles(harness, target_id, overlay_id, cycles=args.cycles, pause_ms=args.pause)
    except Exception as exc:
        _LOGGER.exception("Smoke run aborted")
        print(f"Smoke run failed: {exc}", file=sys.stderr)
        return 99

    print("\nResults:")
    print(f"  Max pixel drift: {report.max_drift}px")
    print(f"  Max latency: {round(report.max_latency_ms)}ms")
    print(f"  Missed alignments: {report.missed}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
