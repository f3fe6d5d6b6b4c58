"""Serial port transport for Bluetooth serial port profile (SPP) robots.

Classic Bluetooth robots such as Sphero 2.0, mBot or EV3 expose an SPP
service. Once bonded, the OS maps each link to a serial port
(e.g. /dev/rfcomm0 on Linux, /dev/tty.Sphero-RGB-AMP-SPP on macOS) which this
transport drives with pyserial.

This module handles:
- Socket bookkeeping on top of serial ports (one port per socket)
- Raw byte stream forwarding with callbacks (one reader thread per socket)
- Discovery of Bluetooth serial ports and add/change/remove notifications

Note: This is a RAW BYTE STREAM layer. It does not interpret messages.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional

import serial
from serial.tools import list_ports

from ..errors import TransportError
from ..models import SPP_UUID, DeviceDescriptor, SocketInfo, SocketProperties
from .base import Transport, completed, failed

logger = logging.getLogger(__name__)

CONNECTION_BAUD = 115200
READ_TIMEOUT = 0.1  # seconds
DEFAULT_DEVICE_CLASS = 0x1F00  # uncategorized, reported by most toy robots
DEFAULT_WATCH_INTERVAL = 2.0  # seconds


def is_bluetooth_port(port) -> bool:
    """Decide whether a pyserial ListPortInfo describes a Bluetooth SPP link."""
    device = (port.device or "").lower()
    if "rfcomm" in device or device.endswith("-spp"):
        return True
    description = f"{port.description or ''} {port.hwid or ''}".lower()
    return "bluetooth" in description


def _port_name(port) -> str:
    for candidate in (port.product, port.description):
        if candidate and candidate.lower() != "n/a":
            return candidate
    return port.name or port.device


class _SerialSocket:
    """State of one transport socket."""

    def __init__(self, socket_id: int, properties: SocketProperties):
        self.socket_id = socket_id
        self.properties = properties
        self.address: Optional[str] = None
        self.uuid: Optional[str] = None
        self.serial: Optional[serial.Serial] = None
        self.connected = False
        self.paused = False
        self.active = False
        self.reader_thread: Optional[threading.Thread] = None

    def info(self) -> SocketInfo:
        return SocketInfo(
            socket_id=self.socket_id,
            address=self.address,
            uuid=self.uuid,
            connected=self.connected,
            paused=self.paused,
        )


class SerialTransport(Transport):
    """Transport that maps sockets onto Bluetooth serial ports.

    The device address is the serial port path. Every discovered port is
    reported as offering the SPP service with `device_class`, so profiles
    are told apart by their name prefix.

    Example:
        >>> transport = SerialTransport()
        >>> devices = Devices(transport)
        >>> devices.prepare()
        >>> transport.start_watching()
    """

    def __init__(self,
                 baudrate: int = CONNECTION_BAUD,
                 timeout: float = READ_TIMEOUT,
                 device_class: int = DEFAULT_DEVICE_CLASS,
                 port_filter: Callable = is_bluetooth_port):
        """Initialize serial transport.

        Args:
            baudrate: Serial baud rate (ignored by most RFCOMM drivers)
            timeout: Read timeout in seconds
            device_class: Device class reported for every discovered port
            port_filter: Predicate selecting the ports to report
        """
        super().__init__()
        self._baudrate = baudrate
        self._timeout = timeout
        self._device_class = device_class
        self._port_filter = port_filter

        self._sockets: Dict[int, _SerialSocket] = {}
        self._next_socket_id = 1
        self._socket_lock = threading.Lock()

        # Discovery
        self._known_devices: Dict[str, DeviceDescriptor] = {}
        self._watch_thread: Optional[threading.Thread] = None
        self._stop_watching = threading.Event()

    # --- Sockets ---

    def create(self, properties: SocketProperties) -> int:
        with self._socket_lock:
            socket_id = self._next_socket_id
            self._next_socket_id += 1
            self._sockets[socket_id] = _SerialSocket(socket_id, properties)
        logger.debug(f"Created socket {socket_id} ({properties.name})")
        return socket_id

    def connect(self, socket_id: int, address: str, uuid: str) -> Future:
        sock = self._sockets.get(socket_id)
        if sock is None:
            return failed(TransportError("Socket not found"))
        if sock.connected:
            return failed(TransportError("Socket is already connected"))

        try:
            sock.serial = serial.Serial(
                port=address,
                baudrate=self._baudrate,
                timeout=self._timeout,
            )
            sock.serial.reset_input_buffer()
        except serial.SerialException as e:
            logger.error(f"Failed to open {address}: {e}")
            sock.serial = None
            return failed(TransportError(f"Connection failed: {e}"))

        sock.address = address
        sock.uuid = uuid
        sock.connected = True
        sock.active = True
        self._start_reader_thread(sock)
        logger.info(f"Socket {socket_id} connected to {address}")
        return completed(None)

    def disconnect(self, socket_id: int) -> Future:
        sock = self._sockets.get(socket_id)
        if sock is None:
            return failed(TransportError("Socket not found"))
        self._close_serial(sock)
        return completed(None)

    def close(self, socket_id: int) -> Future:
        with self._socket_lock:
            sock = self._sockets.pop(socket_id, None)
        if sock is None:
            return failed(TransportError("Socket not found"))
        self._close_serial(sock)
        logger.debug(f"Closed socket {socket_id}")
        return completed(socket_id)

    def send(self, socket_id: int, data: bytes) -> Future:
        sock = self._sockets.get(socket_id)
        if sock is None:
            return failed(TransportError("Socket not found"))
        if not sock.connected or sock.serial is None:
            return failed(TransportError("Socket is not connected"))

        try:
            sent = sock.serial.write(data)
            sock.serial.flush()
        except serial.SerialException as e:
            logger.error(f"Send error on socket {socket_id}: {e}")
            self._handle_error(sock, e)
            return failed(TransportError(f"Connection aborted: {e}"))
        return completed(len(data) if sent is None else sent)

    def get_info(self, socket_id: int) -> Future:
        sock = self._sockets.get(socket_id)
        if sock is None:
            return failed(TransportError("Socket not found"))
        return completed(sock.info())

    def set_paused(self, socket_id: int, paused: bool) -> None:
        sock = self._sockets.get(socket_id)
        if sock is not None:
            sock.paused = paused

    def get_sockets(self) -> List[SocketInfo]:
        with self._socket_lock:
            return [sock.info() for sock in self._sockets.values()]

    # --- Discovery ---

    def get_devices(self) -> List[DeviceDescriptor]:
        connected = {
            info.address for info in self.get_sockets() if info.connected
        }
        results: List[DeviceDescriptor] = []
        for port in list_ports.comports():
            if not self._port_filter(port):
                continue
            results.append(DeviceDescriptor(
                address=port.device,
                name=_port_name(port),
                device_class=self._device_class,
                uuids=(SPP_UUID,),
                connected=port.device in connected,
                paired=True,
            ))
        return results

    def rescan(self) -> None:
        """Compare the port list with the last scan and publish the changes."""
        current = {d.address: d for d in self.get_devices()}
        previous = self._known_devices
        self._known_devices = current

        for address, descriptor in current.items():
            if address not in previous:
                logger.debug(f"Device added: {address}")
                self._notify("device_added", descriptor)
            elif previous[address] != descriptor:
                self._notify("device_changed", descriptor)
        for address, descriptor in previous.items():
            if address not in current:
                logger.debug(f"Device removed: {address}")
                self._notify("device_removed", descriptor)

    def start_watching(self, interval: float = DEFAULT_WATCH_INTERVAL) -> None:
        """Start background thread that rescans ports every `interval` seconds."""
        if self._watch_thread and self._watch_thread.is_alive():
            return
        self._stop_watching.clear()
        self._watch_thread = threading.Thread(
            target=self._watch_loop,
            args=(interval,),
            daemon=True,
            name="SerialTransportWatcher"
        )
        self._watch_thread.start()

    def stop_watching(self) -> None:
        self._stop_watching.set()
        if self._watch_thread and self._watch_thread.is_alive():
            self._watch_thread.join(timeout=1.0)
        self._watch_thread = None

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop_watching()
        super().__exit__(exc_type, exc_val, exc_tb)

    def _watch_loop(self, interval: float) -> None:
        logger.info("Port watcher started")
        while not self._stop_watching.is_set():
            try:
                self.rescan()
            except Exception as e:
                logger.error(f"Error scanning serial ports: {e}")
            self._stop_watching.wait(interval)
        logger.info("Port watcher stopped")

    # Internal methods

    def _start_reader_thread(self, sock: _SerialSocket) -> None:
        sock.reader_thread = threading.Thread(
            target=self._reader_loop,
            args=(sock,),
            daemon=True,
            name=f"SerialReader-{sock.socket_id}"
        )
        sock.reader_thread.start()

    def _reader_loop(self, sock: _SerialSocket) -> None:
        """Read raw bytes from the port and dispatch them to callbacks."""
        logger.debug(f"Reader thread for socket {sock.socket_id} started")

        while sock.active and sock.serial:
            if sock.paused:
                time.sleep(self._timeout)
                continue
            try:
                chunk = sock.serial.read(sock.properties.buffer_size)
                if chunk:
                    self._notify("receive", sock.socket_id, chunk)
            except serial.SerialException as e:
                if sock.active:
                    logger.error(f"Serial read error on socket {sock.socket_id}: {e}")
                    self._handle_error(sock, e)
                break

        logger.debug(f"Reader thread for socket {sock.socket_id} exiting")

    def _handle_error(self, sock: _SerialSocket, error: Exception) -> None:
        """Drop the link after a fatal error and report it as a disconnect.

        Does not join the reader thread, this may run on it.
        """
        sock.active = False
        sock.connected = False
        if sock.serial:
            try:
                sock.serial.close()
            except serial.SerialException:
                pass
            sock.serial = None
        self._notify("receive_error", sock.socket_id, f"disconnected: {error}")

    def _close_serial(self, sock: _SerialSocket) -> None:
        sock.active = False
        sock.connected = False

        if (sock.reader_thread and sock.reader_thread.is_alive()
                and sock.reader_thread is not threading.current_thread()):
            sock.reader_thread.join(timeout=1.0)
        sock.reader_thread = None

        if sock.serial:
            try:
                sock.serial.close()
            except serial.SerialException as e:
                logger.error(f"Error closing serial port: {e}")
            finally:
                sock.serial = None
