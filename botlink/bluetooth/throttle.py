"""Rate limiter that coalesces bursts of calls into one call per window."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Throttle:
    """Run `func` at most once per `interval` seconds.

    The first fire() while idle runs immediately and opens a window. Calls
    made inside the window are folded into a single pending call that runs
    when the window closes, which opens the next window.

    Args:
        func: Function to call (no arguments)
        interval: Window length in seconds
        timer_factory: threading.Timer compatible factory, replaceable in tests
    """

    def __init__(self,
                 func: Callable[[], None],
                 interval: float,
                 timer_factory: Callable = threading.Timer):
        self._func = func
        self._interval = interval
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._pending = False
        self._lock = threading.Lock()

    def fire(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._pending = True
                return
            self._start_timer()
        self._call()

    def stop(self) -> None:
        """Cancel the current window and drop any pending call."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = False

    @property
    def is_waiting(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _start_timer(self) -> None:
        self._timer = self._timer_factory(self._interval, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            if not self._pending:
                self._timer = None
                return
            self._pending = False
            self._start_timer()
        self._call()

    def _call(self) -> None:
        try:
            self._func()
        except Exception as e:
            logger.error(f"Error in throttled call: {e}")
