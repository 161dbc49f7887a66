"""Cancellable one-shot and repeating timers, real and simulated."""

import itertools
import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class _ThreadTimer:
    """One-shot timer running its callback on a daemon thread."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self._timer = threading.Timer(delay, callback)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()


class _RepeatingThreadTimer:
    """Repeating timer: one daemon thread ticking until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="PeriodicTimer", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Periodic timer callback failed: {e}")

    def cancel(self) -> None:
        self._stop_event.set()


class ThreadingTimers:
    """Timers backed by threads and the wall clock."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ThreadTimer:
        """Run callback once after delay seconds. Returns a handle with cancel()."""
        return _ThreadTimer(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> _RepeatingThreadTimer:
        """Run callback every interval seconds until cancelled."""
        return _RepeatingThreadTimer(interval, callback)


class _ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None], interval: Optional[float], seq: int):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.seq = seq
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """
    Simulated clock for deterministic tests.

    Nothing fires until advance() is called; callbacks then run
    synchronously on the calling thread in due-time order.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._timers: List[_ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now + delay, callback, None, next(self._seq))
        self._timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now + interval, callback, interval, next(self._seq))
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every timer that falls due.

        Args:
            seconds: How far to move the clock

        Returns:
            Number of callbacks run
        """
        target = self.now + seconds
        fired = 0
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = timer.due
            if timer.interval is None:
                self._timers.remove(timer)
            else:
                timer.due += timer.interval
            timer.callback()
            fired += 1

        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]
        return fired

    def pending_count(self) -> int:
        """Number of live (not cancelled) timers."""
        return sum(1 for t in self._timers if not t.cancelled)
