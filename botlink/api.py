"""Robot API layer.

RobotApi composes a device connection, a protocol family (framing and
decoding), a command handler and a monitoring loop. Robot families are
described by RobotFamily records instead of API subclasses.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import UnknownCommandError
from .events import EventStream
from .models import Event, EventType
from .monitoring import DEFAULT_MONITOR_INTERVAL, Monitoring
from .protocol.base import Connection, Protocol
from .protocol.sphero2 import Sphero2Handler, Sphero2Protocol

logger = logging.getLogger(__name__)

# (command name, parameters)
CommandCall = Tuple[str, Dict[str, Any]]


@dataclass(frozen=True)
class RobotFamily:
    """Everything RobotApi needs to drive one family of robots.

    Attributes:
        name: Family name used in logs
        protocol_factory: Creates the streaming decoder for one connection
        handler_factory: Creates the command serializer
        prepare_commands: Commands sent right after connecting
        monitor_command: Command polled while connected, None disables monitoring
        stop_command: Command sent on clean up, None to skip
        self_test: Commands sent by run_test()
    """
    name: str
    protocol_factory: Callable[[], Protocol]
    handler_factory: Callable[[], Any]
    prepare_commands: Tuple[CommandCall, ...] = ()
    monitor_command: Optional[str] = None
    stop_command: Optional[str] = None
    self_test: Tuple[CommandCall, ...] = ()


SPHERO_2_FAMILY = RobotFamily(
    name="Sphero 2.0",
    protocol_factory=Sphero2Protocol,
    handler_factory=Sphero2Handler,
    prepare_commands=(
        ("get_device_info", {}),
        ("set_collision_detection", {}),
    ),
    monitor_command="get_location",
    stop_command="stop",
    self_test=(
        ("set_rgb", {"red": 255, "persistent": True}),
        ("get_rgb", {}),
        ("set_rgb", {"green": 255, "persistent": True}),
        ("get_rgb", {}),
        ("set_rgb", {"blue": 255, "persistent": True}),
        ("get_rgb", {}),
        ("set_back_led", {"brightness": 100}),
        ("set_back_led", {"brightness": 75}),
        ("set_back_led", {"brightness": 50}),
        ("set_back_led", {"brightness": 25}),
        ("set_back_led", {}),
        ("set_rgb", {"green": 128}),
        ("roll", {"speed": 0, "heading": 180}),
    ),
)


class RobotApi:
    """High-level interface to one connected robot.

    Decoded protocol events are published on `events`. Acknowledged
    commands can be awaited through request(), which correlates the
    answer by sequence id.

    Example:
        >>> api = RobotApi(SPHERO_2_FAMILY)
        >>> devices.auto_connect_device("Sphero", lambda d, a: api.connect(d))
        >>> api.events.subscribe(EventType.POSITION, print)
        >>> api.exec("roll", {"speed": 80, "heading": 90})
        >>> api.request("get_rgb").result(timeout=2.0)
        RGB(red=0, green=128, blue=0)
    """

    def __init__(self,
                 family: RobotFamily,
                 monitor_interval: float = DEFAULT_MONITOR_INTERVAL,
                 run_self_test: bool = False):
        self.name = family.name
        self.family = family
        self.prepared = False
        self.device: Optional[Connection] = None
        self.events = EventStream()
        self.run_self_test = run_self_test

        self._protocol = family.protocol_factory()
        self._handler = family.handler_factory()
        self.monitoring: Optional[Monitoring] = None
        if family.monitor_command:
            self.monitoring = Monitoring(self, family.monitor_command, monitor_interval)

        self._pending: Dict[int, Future] = {}
        self._pending_lock = threading.Lock()
        self._listeners: List[Callable[[], None]] = []

    def connect(self, device: Optional[Connection]) -> bool:
        """Attach a connected device and prepare it.

        Returns:
            True if the device was prepared by this call.
        """
        if device is None or not device.is_connected():
            logger.error("Device is not ready yet...")
            return False

        self.device = device
        if self.prepared:
            return False

        address = getattr(device, "address", "")
        logger.info(f"Preparing {self.name} api for {address}")
        self.connect_event("Preparing device ...", 1)
        self.connect_event(f"Prepare {self.name} api for {address}", 2)
        self.prepare()
        if self.run_self_test:
            self.run_test()
        self.connect_event("Ready ...", 3)
        return True

    def connect_event(self, message: str, step: int) -> None:
        self.events.emit(Event(EventType.CONNECT, message, step=step))

    def prepare(self) -> None:
        """Listen to the device stream, send setup commands and start monitoring."""
        self._listeners = [
            self.device.events.subscribe(EventType.RECEIVE, self._handle_data),
            self.device.events.subscribe(EventType.DEVICE_STATE, self._handle_device_state),
        ]
        for name, data in self.family.prepare_commands:
            self.exec(name, data)
        if self.monitoring:
            self.monitoring.start()
        self.prepared = True

    def monitor(self, enable: bool) -> None:
        if not self.monitoring:
            return
        if enable and self.is_connected():
            logger.info("Enable monitoring ...")
            self.monitoring.start()
        elif not enable:
            logger.info("Disable monitoring ...")
            self.monitoring.stop()

    def run_test(self) -> None:
        logger.info("Prepare self test...")
        for name, data in self.family.self_test:
            self.exec(name, data)

    def clean_up(self) -> None:
        """Stop the robot, detach from the device and drop in-flight state."""
        logger.info("Clean up ...")
        if self.family.stop_command:
            self.exec(self.family.stop_command)
        for unsubscribe in self._listeners:
            unsubscribe()
        self._listeners = []
        if self.monitoring:
            self.monitoring.clean_up()
        self._protocol.reset()
        self._cancel_pending()
        self.prepared = False

    def disconnect(self) -> None:
        device = self.device
        self.clean_up()
        if device:
            device.disconnect()

    def reset(self) -> None:
        if self.device:
            self.device.reset()
        self._protocol.reset()
        self._cancel_pending()

    def is_connected(self) -> bool:
        return bool(self.device and self.device.is_connected())

    # --- Commands ---

    def exec(self, command: str, data: Optional[dict] = None) -> None:
        """Send the command registered as `command`.

        Raises:
            UnknownCommandError: If the command or one of its parameters is unknown
        """
        for buffer in self._buffers(self.get_buffer(command, data)):
            self._send(buffer.read_signed(), buffer.get_characteristic())

    def request(self, command: str, data: Optional[dict] = None) -> Future:
        """Send an acknowledged command and return a future for its decoded answer.

        A newer request with the same sequence id cancels the older one.
        There is no built-in timeout; use future.result(timeout=...).
        """
        buffers = self._buffers(self.get_buffer(command, data))
        sequences = [b.sequence for b in buffers if b.reply and b.sequence]
        if not sequences:
            raise UnknownCommandError(f"Command {command} has no response", command=command)

        future: Future = Future()
        with self._pending_lock:
            previous = self._pending.pop(sequences[-1], None)
            self._pending[sequences[-1]] = future
        if previous is not None:
            previous.cancel()

        for buffer in buffers:
            self._send(buffer.read_signed(), buffer.get_characteristic())
        return future

    def get_buffer(self, command: str, data: Optional[dict] = None):
        return self._handler.get_buffer(command, data)

    def get_buffer_signed(self, command: str, data: Optional[dict] = None):
        packet = self.get_buffer(command, data)
        if isinstance(packet, list):
            return [buffer.read_signed() for buffer in packet]
        return packet.read_signed()

    def get_handler(self):
        return self._handler

    @property
    def pending_requests(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # Internal methods

    @staticmethod
    def _buffers(packet) -> list:
        return packet if isinstance(packet, list) else [packet]

    def _send(self, data: bytes, characteristic: Optional[str] = None) -> None:
        if self.device:
            self.device.send(data, characteristic)

    def _handle_data(self, event: Event) -> None:
        for decoded in self._protocol.on_bytes(event.data):
            self._resolve(decoded)
            self.events.emit(decoded)

    def _handle_device_state(self, event: Event) -> None:
        """Detach on disconnect so the next connect() prepares again."""
        if event.data.get("connected"):
            return
        logger.info(f"{self.name} device disconnected")
        if self.monitoring:
            self.monitoring.stop()
        for unsubscribe in self._listeners:
            unsubscribe()
        self._listeners = []
        self._protocol.reset()
        self._cancel_pending()
        self.prepared = False

    def _resolve(self, event: Event) -> None:
        if event.sequence is None:
            return
        with self._pending_lock:
            future = self._pending.pop(event.sequence, None)
        if future is not None and not future.done():
            future.set_result(event.data)

    def _cancel_pending(self) -> None:
        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            future.cancel()
