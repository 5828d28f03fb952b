from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from typing import Callable, List, Optional, Tuple

from .interfaces import ICancellable, IScheduler


class ThreadingScheduler(IScheduler):
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ICancellable:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class AsyncioScheduler(IScheduler):
    """Runs callbacks on an asyncio event loop (single-threaded delivery)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ICancellable:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _ManualHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(IScheduler):
    """Virtual clock; callbacks fire only when `advance()` moves time past them."""

    def __init__(self):
        self.now = 0.0
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ICancellable:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run whatever came due. Returns callbacks run."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            callback()
            ran += 1
        self.now = target
        return ran


class Debouncer:
    """Runs `callback` once `delay` seconds have passed since the last `trigger()`."""

    def __init__(self, scheduler: IScheduler, delay: float, callback: Callable[[], None]):
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._scheduler = scheduler
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._handle: Optional[ICancellable] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self._scheduler.call_later(self.delay, lambda: self._fire(generation))

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # a timer thread may still fire after being replaced
            if generation != self._generation:
                return
            self._handle = None
        self._callback()
