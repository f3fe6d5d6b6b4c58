"""Abstract base class for the Bluetooth transport layer.

The Transport interface is the boundary between botlink and whatever
actually moves bytes: an OS Bluetooth stack, serial port profile links or a
test double. botlink never talks to hardware directly.

Key principles:
- Socket handles are plain integers, distinct from device addresses
- Asynchronous operations return concurrent.futures.Future objects; a failed
  future carries a TransportError whose message is the transport's error text
- Incoming data, errors and discovery changes are published to subscribers
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Callable, Dict, List

from ..models import DeviceDescriptor, SocketInfo, SocketProperties

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract transport interface for Bluetooth sockets.

    Transports are responsible for:
    1. Creating, connecting, disconnecting and closing sockets
    2. Sending raw bytes and publishing received bytes
    3. Enumerating visible devices and open sockets
    4. Publishing discovery notifications

    Transports should NOT interpret the byte stream. Framing and decoding
    belong to the protocol layer.
    """

    def __init__(self):
        self._callbacks: Dict[str, List[Callable]] = {}
        self._callback_lock = threading.Lock()

    @abstractmethod
    def create(self, properties: SocketProperties) -> int:
        """Create a new, unconnected socket.

        Returns:
            Socket handle

        Raises:
            TransportError: If the socket could not be created
        """
        pass

    @abstractmethod
    def connect(self, socket_id: int, address: str, uuid: str) -> Future:
        """Connect a socket to the service `uuid` on device `address`."""
        pass

    @abstractmethod
    def disconnect(self, socket_id: int) -> Future:
        """Disconnect a socket. The socket handle stays valid."""
        pass

    @abstractmethod
    def close(self, socket_id: int) -> Future:
        """Disconnect and destroy a socket. Resolves with the socket handle."""
        pass

    @abstractmethod
    def send(self, socket_id: int, data: bytes) -> Future:
        """Send raw bytes. Resolves with the number of bytes sent."""
        pass

    @abstractmethod
    def get_info(self, socket_id: int) -> Future:
        """Request the current SocketInfo of a socket."""
        pass

    @abstractmethod
    def set_paused(self, socket_id: int, paused: bool) -> None:
        """Pause or resume delivery of received data for a socket."""
        pass

    @abstractmethod
    def get_sockets(self) -> List[SocketInfo]:
        """List all sockets currently owned by this transport."""
        pass

    @abstractmethod
    def get_devices(self) -> List[DeviceDescriptor]:
        """List all nearby or paired devices."""
        pass

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close every socket on exit."""
        for info in self.get_sockets():
            self.close(info.socket_id)

    # --- Subscriptions ---

    def subscribe_receive(
        self,
        callback: Callable[[int, bytes], None]
    ) -> Callable[[], None]:
        """Subscribe to received data as (socket_id, chunk).

        Returns:
            Unsubscribe function
        """
        return self._subscribe("receive", callback)

    def subscribe_receive_error(
        self,
        callback: Callable[[int, str], None]
    ) -> Callable[[], None]:
        """Subscribe to per-socket error strings as (socket_id, message)."""
        return self._subscribe("receive_error", callback)

    def subscribe_device_added(
        self,
        callback: Callable[[DeviceDescriptor], None]
    ) -> Callable[[], None]:
        return self._subscribe("device_added", callback)

    def subscribe_device_changed(
        self,
        callback: Callable[[DeviceDescriptor], None]
    ) -> Callable[[], None]:
        return self._subscribe("device_changed", callback)

    def subscribe_device_removed(
        self,
        callback: Callable[[DeviceDescriptor], None]
    ) -> Callable[[], None]:
        return self._subscribe("device_removed", callback)

    def _subscribe(self, topic: str, callback: Callable) -> Callable[[], None]:
        with self._callback_lock:
            self._callbacks.setdefault(topic, []).append(callback)

        def unsubscribe():
            with self._callback_lock:
                callbacks = self._callbacks.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify(self, topic: str, *args) -> None:
        """Invoke all subscribers of `topic`; failures are logged."""
        with self._callback_lock:
            callbacks = list(self._callbacks.get(topic, []))

        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in {topic} callback: {e}")


def completed(result=None) -> Future:
    """Return a future that already holds `result`."""
    future: Future = Future()
    future.set_result(result)
    return future


def failed(error: Exception) -> Future:
    """Return a future that already failed with `error`."""
    future: Future = Future()
    future.set_exception(error)
    return future
