"""Unit tests for Throttle."""

import threading
import time
import unittest
from unittest.mock import MagicMock

from botlink.bluetooth.throttle import Throttle


class ManualTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.cancelled = False

    def start(self):
        pass

    def cancel(self):
        self.cancelled = True


class TestThrottle(unittest.TestCase):
    """Test call coalescing with a manual timer."""

    def setUp(self):
        self.timers = []
        self.func = MagicMock()

        def factory(interval, function):
            timer = ManualTimer(interval, function)
            self.timers.append(timer)
            return timer

        self.throttle = Throttle(self.func, 5.0, timer_factory=factory)

    def test_first_fire_runs_immediately(self):
        self.throttle.fire()

        self.func.assert_called_once()
        self.assertTrue(self.throttle.is_waiting)
        self.assertEqual(self.timers[0].interval, 5.0)
        self.assertTrue(self.timers[0].daemon)

    def test_burst_is_coalesced(self):
        """Calls inside the window run once when it ends."""
        self.throttle.fire()
        self.throttle.fire()
        self.throttle.fire()
        self.assertEqual(self.func.call_count, 1)

        self.timers[0].function()
        self.assertEqual(self.func.call_count, 2)
        self.assertEqual(len(self.timers), 2)

        self.timers[1].function()
        self.assertEqual(self.func.call_count, 2)
        self.assertFalse(self.throttle.is_waiting)

    def test_window_without_calls_closes(self):
        self.throttle.fire()
        self.timers[0].function()

        self.assertFalse(self.throttle.is_waiting)
        self.throttle.fire()
        self.assertEqual(self.func.call_count, 2)

    def test_stop_drops_pending_call(self):
        self.throttle.fire()
        self.throttle.fire()

        self.throttle.stop()

        self.assertTrue(self.timers[0].cancelled)
        self.assertFalse(self.throttle.is_waiting)
        self.assertEqual(self.func.call_count, 1)

    def test_failing_function_is_logged(self):
        self.func.side_effect = RuntimeError("boom")

        with self.assertLogs("botlink.bluetooth.throttle", level="ERROR"):
            self.throttle.fire()


class TestThrottleTimer(unittest.TestCase):
    """Test with the real threading.Timer."""

    def test_pending_call_runs_after_interval(self):
        called = threading.Event()
        calls = []

        def func():
            calls.append(time.monotonic())
            if len(calls) == 2:
                called.set()

        throttle = Throttle(func, 0.05)
        throttle.fire()
        throttle.fire()

        self.assertTrue(called.wait(timeout=2.0))
        throttle.stop()
        self.assertEqual(len(calls), 2)


if __name__ == "__main__":
    unittest.main()
