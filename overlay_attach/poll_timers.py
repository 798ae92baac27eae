from __future__ import annotations

from typing import Callable, Optional

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

MIN_POLL_MS = 50
MAX_POLL_MS = 500


def clamp_poll_ms(value: int) -> int:
    return max(MIN_POLL_MS, min(MAX_POLL_MS, int(value)))


class RepeatingPoll:
    """Re-arms a single-shot scheduler after every tick until cancelled.

    ``after`` / ``after_cancel`` follow the Tk-style contract: ``after(ms, cb)``
    returns a handle that ``after_cancel`` accepts. Once ``cancel`` runs, the
    callback is never invoked again, even if a tick is currently executing.
    """

    def __init__(
        self,
        interval_ms: int,
        callback: Callable[[], None],
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
    ) -> None:
        self._interval_ms = int(interval_ms)
        self._callback = callback
        self._after = after
        self._after_cancel = after_cancel
        self._handle: Optional[object] = None
        self._alive = False

    @property
    def alive(self) -> bool:
        return self._alive

    def start(self, *, immediate: bool = False) -> None:
        if self._alive:
            return
        self._alive = True
        if immediate:
            self._run()
        else:
            self._schedule()

    def cancel(self) -> None:
        self._alive = False
        handle = self._handle
        self._handle = None
        if handle is not None:
            self._after_cancel(handle)

    def _schedule(self) -> None:
        if self._alive:
            self._handle = self._after(self._interval_ms, self._run)

    def _run(self) -> None:
        self._handle = None
        if not self._alive:
            return
        try:
            self._callback()
        finally:
            self._schedule()
