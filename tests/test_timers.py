"""Tests for timers module."""

import threading

from src.watcher.timers import ManualTimers, ThreadingTimers


class TestManualTimers:
    """Tests for ManualTimers class."""

    def test_nothing_fires_without_advance(self):
        timers = ManualTimers()
        fired = []
        timers.call_later(1.0, lambda: fired.append("a"))

        assert fired == []
        assert timers.pending_count() == 1

    def test_one_shot_fires_once(self):
        timers = ManualTimers()
        fired = []
        timers.call_later(2.0, lambda: fired.append(timers.now))

        assert timers.advance(1.9) == 0
        assert timers.advance(0.1) == 1
        assert timers.advance(10) == 0
        assert fired == [2.0]
        assert timers.pending_count() == 0

    def test_fires_in_due_order(self):
        timers = ManualTimers()
        fired = []
        timers.call_later(3.0, lambda: fired.append("late"))
        timers.call_later(1.0, lambda: fired.append("early"))
        timers.call_later(1.0, lambda: fired.append("early-second"))

        timers.advance(5)

        assert fired == ["early", "early-second", "late"]
        assert timers.now == 5

    def test_repeating_timer(self):
        timers = ManualTimers()
        ticks = []
        handle = timers.call_every(60.0, lambda: ticks.append(timers.now))

        assert timers.advance(150) == 2
        assert ticks == [60.0, 120.0]

        handle.cancel()
        assert timers.advance(600) == 0
        assert timers.pending_count() == 0

    def test_cancelled_timer_does_not_fire(self):
        timers = ManualTimers()
        fired = []
        handle = timers.call_later(1.0, lambda: fired.append("x"))

        handle.cancel()
        timers.advance(5)

        assert fired == []

    def test_callback_can_schedule_more_work(self):
        timers = ManualTimers()
        fired = []

        def first():
            fired.append("first")
            timers.call_later(1.0, lambda: fired.append("second"))

        timers.call_later(1.0, first)
        timers.advance(2.0)

        assert fired == ["first", "second"]


class TestThreadingTimers:
    """Tests for ThreadingTimers class."""

    def test_call_later(self):
        done = threading.Event()
        ThreadingTimers().call_later(0.01, done.set)

        assert done.wait(timeout=2.0)

    def test_call_later_cancel(self):
        done = threading.Event()
        handle = ThreadingTimers().call_later(0.2, done.set)
        handle.cancel()

        assert not done.wait(timeout=0.4)

    def test_call_every(self):
        count = []
        enough = threading.Event()

        def tick():
            count.append(1)
            if len(count) >= 2:
                enough.set()

        handle = ThreadingTimers().call_every(0.01, tick)
        try:
            assert enough.wait(timeout=2.0)
        finally:
            handle.cancel()
