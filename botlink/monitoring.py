"""Periodic telemetry polling while a robot is connected.

The monitor issues one read-style command per tick through the API's send
path (e.g. 'get_location'); the answers come back as regular protocol
events. It holds no device state besides the started flag, so it can be
started and stopped repeatedly across reconnects.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .api import RobotApi

logger = logging.getLogger(__name__)

DEFAULT_MONITOR_INTERVAL = 1.0  # seconds


class Monitoring:
    """Fixed interval poller bound to a RobotApi.

    Args:
        api: API whose exec() sends the poll command
        command: Command name sent on every tick
        interval: Seconds between ticks
    """

    def __init__(self,
                 api: RobotApi,
                 command: str = "get_location",
                 interval: float = DEFAULT_MONITOR_INTERVAL):
        self.api = api
        self.command = command
        self.interval = interval
        self.started = False

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start polling. No-op if already started."""
        with self._lock:
            if self.started:
                return
            logger.info(f"Starting {self.command} monitoring (interval={self.interval}s)")
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._monitor_loop,
                args=(self._stop_event,),
                daemon=True,
                name="RobotMonitoring"
            )
            self.started = True
            self._thread.start()

    def stop(self) -> None:
        """Stop polling. No-op if not started."""
        with self._lock:
            if not self.started:
                return
            logger.info("Stopping monitoring ...")
            self._stop_event.set()
            thread, self._thread = self._thread, None
            self.started = False

        if (thread and thread.is_alive()
                and thread is not threading.current_thread()):
            thread.join(timeout=1.0)

    def clean_up(self) -> None:
        logger.info("Clean up monitoring ...")
        self.stop()

    def update(self) -> None:
        """Send the poll command once."""
        self.api.exec(self.command)

    def _monitor_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.update()
            except Exception as e:
                logger.error(f"Error in monitoring loop: {e}")
