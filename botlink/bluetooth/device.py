"""Connection lifecycle of a single Bluetooth robot.

A Device owns exactly one transport socket at a time and tracks the
connected/connecting/paused flags for it:

    idle -> connecting -> connected -> (paused <-> unpaused) -> idle

Failed connects fall back to idle without retrying; retries are the
caller's (or the registry's) business. Transport results arrive as futures
and are handled in their done callbacks, so a Device works the same with
synchronous test doubles and threaded transports.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from ..errors import TransportError
from ..events import EventStream
from ..models import Event, EventType, Profile, SocketInfo, SocketProperties
from ..transport.base import Transport

logger = logging.getLogger(__name__)

SOCKET_PROPERTIES = SocketProperties()

# (socket_id, address)
SocketCallback = Callable[[Optional[int], str], None]


def _error_message(future: Future) -> Optional[str]:
    """Return the lower-cased error text of a failed future, else None."""
    if future.cancelled():
        return "cancelled"
    error = future.exception()
    if error is None:
        return None
    return str(error).lower()


class Device:
    """One physical robot and its transport socket.

    Example:
        >>> device = Device(transport, "AA:BB", profile=SPHERO_2)
        >>> device.connect(lambda socket_id, address: print("ready"))
        >>> device.send(b"\\xff\\xff...")
        >>> device.disconnect()
    """

    def __init__(self,
                 transport: Transport,
                 address: str,
                 profile: Optional[Profile] = None,
                 name: str = "",
                 paired: bool = False,
                 connected: bool = False,
                 socket_properties: SocketProperties = SOCKET_PROPERTIES):
        self._transport = transport
        self._address = address
        self.profile = profile
        self.name = name
        self.paired = paired
        self.connected = connected
        self.connecting = False
        self.socket_id: Optional[int] = None
        self.socket_properties = socket_properties
        self.events = EventStream()

        self.connect_event: Optional[SocketCallback] = None
        self.disconnect_event: Optional[SocketCallback] = None
        self.connect_callback: Optional[SocketCallback] = None
        self.disconnect_callback: Optional[SocketCallback] = None

        self._paused = False
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        profile = self.profile.name if self.profile else None
        return (f"Device(address={self._address!r}, profile={profile!r}, "
                f"connected={self.connected}, socket_id={self.socket_id})")

    @property
    def address(self) -> str:
        return self._address

    def set_connect_event(self, callback: SocketCallback) -> Device:
        self.connect_event = callback
        return self

    def set_disconnect_event(self, callback: SocketCallback) -> Device:
        self.disconnect_event = callback
        return self

    def is_connected(self) -> bool:
        return self.connected

    def is_paused(self) -> bool:
        return self._paused

    def has_socket(self) -> bool:
        return self.socket_id is not None

    def get_name_prefix(self) -> str:
        if self.profile:
            return self.profile.name_prefix or ""
        return ""

    # --- Lifecycle ---

    def connect(self, callback: Optional[SocketCallback] = None) -> None:
        """Open a socket to the robot.

        Ignored while another connect is in flight, so there is at most one
        connect attempt per device. `callback` fires once after a successful
        connect and is then cleared.
        """
        with self._lock:
            if self.connecting:
                return
            if self.connected and self.socket_id is not None:
                logger.warning(f"Already connected to socket {self.socket_id}")
                return
            if self.profile is None:
                logger.error(f"Cannot connect {self._address} without a profile")
                return
            self.connecting = True
            stale_socket_id, self.socket_id = self.socket_id, None

        if stale_socket_id is not None:
            logger.debug(f"Closing stale socket {stale_socket_id}")
            future = self._transport.close(stale_socket_id)
            future.add_done_callback(self._handle_close_stale)

        logger.info(f"Connecting {self._address} ...")
        try:
            socket_id = self._transport.create(self.socket_properties)
        except TransportError as e:
            logger.info(f"Error creating socket: {e}")
            self.connecting = False
            return

        if callback:
            self.connect_callback = callback
        self.socket_id = socket_id
        logger.info(f"Connecting socket {socket_id} with uuid {self.profile.uuid} ...")
        future = self._transport.connect(socket_id, self._address, self.profile.uuid)
        future.add_done_callback(self._handle_connect)

    def disconnect(self, force: bool = False,
                   callback: Optional[SocketCallback] = None) -> None:
        """Disconnect the socket.

        Without a socket this is a successful no-op: `callback` runs right
        away and `force` additionally clears a stuck connecting flag.
        """
        if self.socket_id is None:
            if force:
                self.connecting = False
            if callback:
                callback(None, self._address)
            return
        if callback:
            self.disconnect_callback = callback
        future = self._transport.disconnect(self.socket_id)
        future.add_done_callback(lambda f: self._handle_disconnect())

    def close(self) -> None:
        """Close and release the socket."""
        if self.socket_id is None:
            return
        future = self._transport.close(self.socket_id)
        future.add_done_callback(self._handle_close)

    def reset(self) -> None:
        """Invalidate in-flight command state; no-op without a socket."""
        if self.socket_id is None:
            return
        logger.debug(f"Reset {self._address}")

    def send(self, data: bytes, characteristic: Optional[str] = None) -> None:
        """Send raw bytes. Dropped silently while there is no socket.

        `characteristic` is accepted for API compatibility; serial port
        profile links have a single channel.
        """
        if self.socket_id is None:
            return
        future = self._transport.send(self.socket_id, data)
        future.add_done_callback(self._handle_send)

    def update_info(self) -> None:
        """Refresh connected/paused flags from the transport."""
        if self.socket_id is None:
            return
        future = self._transport.get_info(self.socket_id)
        future.add_done_callback(self._handle_socket_info)

    def get_socket(self) -> None:
        """Adopt an already connected transport socket for this address.

        Used after a rescan reports the device as connected, e.g. when a
        previous session left the link open.
        """
        for info in self._transport.get_sockets():
            if (info.connected and info.address == self._address
                    and self.socket_id != info.socket_id):
                logger.info(f"Reconnecting to socket {info.socket_id}")
                self.socket_id = info.socket_id
                self._paused = info.paused
                self.connected = True
                self._fire(self.connect_event)
                return

    def pause(self) -> None:
        if self.connected and not self._paused:
            self._transport.set_paused(self.socket_id, True)
            self.update_info()

    def unpause(self) -> None:
        if self.connected and self._paused:
            self._transport.set_paused(self.socket_id, False)
            self.update_info()

    # --- Transport notifications ---

    def handle_data(self, data: bytes) -> None:
        """Publish received bytes as a RECEIVE event."""
        if not data:
            return
        self.events.emit(Event(EventType.RECEIVE, bytes(data)))

    def handle_error(self, message: str) -> None:
        """Handle a per-socket error string from the transport."""
        logger.info(f"handle_error {self._address}: {message}")
        text = message.lower()
        if "disconnected" in text or "system_error" in text:
            socket_id = self.socket_id
            self.close()
            self._handle_disconnect(socket_id)
        self.connecting = False

    # Internal methods

    def _handle_connect(self, future: Future) -> None:
        error = _error_message(future)
        if error is not None:
            logger.warning(f"Socket connection failed: {error}")
            if ("connection" in error and "failed" in error) or "0x2743" in error:
                self.close()
            self.connect_callback = None
            self.connecting = False
            return

        logger.info(f"Connected to socket {self.socket_id}")
        self.connected = True
        self.update_info()
        self._fire(self.connect_event)
        callback, self.connect_callback = self.connect_callback, None
        self._fire(callback)
        self.connecting = False
        self.events.emit(Event(EventType.DEVICE_STATE, {"connected": True}))

    def _handle_disconnect(self, socket_id: Optional[int] = None) -> None:
        if socket_id is None:
            socket_id = self.socket_id
        logger.warning(f"Disconnected from socket {socket_id}")
        self.connected = False
        self.update_info()
        self.reset()
        self._fire(self.disconnect_event, socket_id)
        callback, self.disconnect_callback = self.disconnect_callback, None
        self._fire(callback, socket_id)
        self.connecting = False
        self.events.emit(Event(EventType.DEVICE_STATE, {"connected": False}))

    def _handle_close(self, future: Optional[Future] = None) -> None:
        if future is not None and _error_message(future) is None:
            logger.info(f"Closed socket {future.result()}")
        self.connected = False
        self.connecting = False
        self.socket_id = None

    def _handle_close_stale(self, future: Future) -> None:
        error = _error_message(future)
        if error is not None:
            logger.debug(f"Stale socket already gone: {error}")

    def _handle_send(self, future: Future) -> None:
        error = _error_message(future)
        if error is None:
            return
        if (("socket" in error and "not" in error and "connected" in error)
                or ("connection" in error and "aborted" in error)):
            self.connected = False
        else:
            logger.error(f"Socket error: {error}")
            self.update_info()

    def _handle_socket_info(self, future: Future) -> None:
        error = _error_message(future)
        if error is not None:
            if "socket not found" in error:
                socket_id = self.socket_id
                self._handle_close()
                if socket_id is not None:
                    self._handle_disconnect(socket_id)
            else:
                logger.error(f"Socket info error: {error}")
            return
        info: Optional[SocketInfo] = future.result()
        if info is None:
            return
        self.connected = info.connected
        self._paused = info.paused

    def _fire(self, callback: Optional[SocketCallback],
              socket_id: Optional[int] = None) -> None:
        if callback is None:
            return
        if socket_id is None:
            socket_id = self.socket_id
        try:
            callback(socket_id, self._address)
        except Exception as e:
            logger.error(f"Error in device callback: {e}")
