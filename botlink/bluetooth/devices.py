"""Device registry: discovery, profile matching and socket routing.

Devices keeps one Device per address for the lifetime of the registry. A
Device that disconnects stays registered so it can be reconnected; it is
only dropped when the transport reports the device as removed.
"""
from __future__ import annotations

import json
import logging
import random
import threading
from typing import Callable, Dict, Iterable, List, Optional

from ..models import DeviceDescriptor, Profile
from ..transport.base import Transport
from .device import Device
from .profiles import DEFAULT_PROFILES, find_profile
from .throttle import Throttle

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_DEVICES_INTERVAL = 5.0  # seconds


class Devices:
    """Registry of known robots reachable through one transport.

    Responsibilities:
    - Match discovery entries against profiles (first match wins)
    - Create one Device per address and refresh known ones
    - Throttle rescans triggered by discovery notifications
    - Route received data and errors from socket handles to their Device
    - Resolve devices by name, preferring connected ones

    Example:
        >>> devices = Devices(SerialTransport())
        >>> devices.prepare()
        >>> devices.auto_connect_device("Sphero", lambda device, address: ...)
        True
    """

    def __init__(self,
                 transport: Transport,
                 profiles: Iterable[Profile] = DEFAULT_PROFILES,
                 update_devices_interval: float = DEFAULT_UPDATE_DEVICES_INTERVAL,
                 timer_factory: Callable = threading.Timer):
        """Initialize registry.

        Args:
            transport: Transport used for discovery and sockets
            profiles: Supported profiles in match order
            update_devices_interval: Rescan throttle window in seconds
            timer_factory: Timer factory handed to the rescan throttle
        """
        self._transport = transport
        self._profiles = tuple(profiles)
        self.update_devices_interval = update_devices_interval
        self._timer_factory = timer_factory

        self.prepared = False
        self.throttled_update_devices: Optional[Throttle] = None

        self._devices: Dict[str, Device] = {}
        self._socket_ids: Dict[int, Device] = {}
        self._device_cache = ""
        self._auto_connect_device_cache: List[str] = []
        self._unsubscribers: List[Callable[[], None]] = []
        self._lock = threading.RLock()

    def prepare(self) -> None:
        """Close stale sockets, start listening to the transport and scan."""
        if self.prepared:
            return

        logger.debug("Preparing Bluetooth devices ...")
        self.close_sockets()
        self.throttled_update_devices = Throttle(
            self.update_devices,
            self.update_devices_interval,
            timer_factory=self._timer_factory,
        )
        transport = self._transport
        self._unsubscribers = [
            transport.subscribe_device_added(self._handle_device_added),
            transport.subscribe_device_changed(self._handle_device_changed),
            transport.subscribe_device_removed(self._handle_device_removed),
            transport.subscribe_receive(self.receive_data),
            transport.subscribe_receive_error(self.receive_error),
        ]
        self.update_devices()
        self.prepared = True

    def close(self) -> None:
        """Stop listening to the transport."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self.throttled_update_devices:
            self.throttled_update_devices.stop()
        self.prepared = False

    def update_devices(self) -> None:
        """Query the transport for visible devices and process the result."""
        self._handle_get_devices(self._transport.get_devices())

    def close_sockets(self) -> None:
        """Close every socket the transport has open, known or not."""
        logger.debug("Closing all existing sockets ...")
        for info in self._transport.get_sockets():
            future = self._transport.close(info.socket_id)
            future.add_done_callback(self._handle_close_socket)

    # --- Routing ---

    def receive_data(self, socket_id: int, data: bytes) -> None:
        device = self._socket_ids.get(socket_id)
        if device is not None:
            device.handle_data(data)

    def receive_error(self, socket_id: int, error: str) -> None:
        device = self._socket_ids.get(socket_id)
        if device is not None:
            device.handle_error(error)

    # --- Lookup ---

    def get_device_profile(self, descriptor: DeviceDescriptor) -> Optional[Profile]:
        profile = find_profile(descriptor, self._profiles)
        if profile:
            logger.debug(f"Found device profile {profile.name} for {descriptor.address}")
        return profile

    def get_device(self, address: str) -> Optional[Device]:
        with self._lock:
            device = self._devices.get(address)
        if device is None:
            logger.error(f"Bluetooth device address {address} is unknown!")
        return device

    def get_devices(self) -> Dict[str, Device]:
        with self._lock:
            return dict(self._devices)

    def get_device_by_name(self, name: str) -> Optional[Device]:
        """Pick a device whose profile name prefix contains `name`.

        Connected devices are preferred; ties are broken at random. An
        unknown name is logged once per registry.
        """
        connected: List[Device] = []
        disconnected: List[Device] = []
        with self._lock:
            for device in self._devices.values():
                if name in device.get_name_prefix():
                    if device.is_connected():
                        connected.append(device)
                    else:
                        disconnected.append(device)

        if connected:
            logger.debug(f"Found {len(connected)} connected device(s) for {name}")
            return random.choice(connected)
        if disconnected:
            logger.debug(f"Found {len(disconnected)} disconnected device(s) for {name}")
            return random.choice(disconnected)
        if name not in self._auto_connect_device_cache:
            logger.error(f"Bluetooth device with name {name} is unknown!")
            self._auto_connect_device_cache.append(name)
        return None

    def auto_connect_device(
        self,
        name: str,
        callback: Callable[[Device, str], None]
    ) -> bool:
        """Connect a device by name and call `callback(device, address)` when ready.

        Returns:
            True if a candidate device was found (not whether it is connected yet).
        """
        device = self.get_device_by_name(name)
        if device is None:
            return False

        if device.is_connected() and device.has_socket():
            callback(device, device.address)
        else:
            device.connect(lambda socket_id, address: callback(device, address))
        return True

    # --- Transport notifications ---

    def _handle_device_added(self, descriptor: DeviceDescriptor) -> None:
        self._schedule_update()

    def _handle_device_changed(self, descriptor: DeviceDescriptor) -> None:
        self._schedule_update()

    def _handle_device_removed(self, descriptor: DeviceDescriptor) -> None:
        logger.debug(f"Bluetooth device removed: {descriptor.address}")
        with self._lock:
            device = self._devices.pop(descriptor.address, None)
            if device is not None:
                for socket_id in [s for s, d in self._socket_ids.items() if d is device]:
                    del self._socket_ids[socket_id]
        self._schedule_update()

    def _schedule_update(self) -> None:
        """Invalidate the discovery cache and request a throttled rescan."""
        self._device_cache = ""
        if self.throttled_update_devices is None:
            logger.debug("Ignoring discovery notification before prepare()")
            return
        self.throttled_update_devices.fire()

    def _handle_close_socket(self, future) -> None:
        if future.exception() is None:
            logger.debug(f"Closed socket {future.result()}!")

    def _handle_get_devices(self, descriptors: List[DeviceDescriptor]) -> None:
        snapshot = json.dumps(
            sorted((d.to_dict() for d in descriptors),
                   key=lambda d: json.dumps(d, sort_keys=True)),
            sort_keys=True,
        )
        if self._device_cache and self._device_cache == snapshot:
            return
        if not descriptors:
            logger.warning("Did not find any Bluetooth devices!")

        for descriptor in descriptors:
            profile = self.get_device_profile(descriptor)
            if profile is None:
                logger.debug(f"Found no device profile for: {descriptor}")
                continue

            address = descriptor.address
            with self._lock:
                device = self._devices.get(address)
                if device is None:
                    device = Device(
                        self._transport,
                        address,
                        profile=profile,
                        name=descriptor.name,
                        paired=descriptor.paired,
                        connected=descriptor.connected,
                    )
                    device.set_connect_event(self._handle_connect)
                    device.set_disconnect_event(self._handle_disconnect)
                    self._devices[address] = device
                    logger.info(f"Added {profile.name} device {address}")
                    created = True
                else:
                    created = False
            if not created:
                device.update_info()
            if descriptor.connected:
                device.get_socket()

        self._device_cache = snapshot

    def _handle_connect(self, socket_id: Optional[int], address: str) -> None:
        with self._lock:
            device = self._devices.get(address)
            if device is None:
                logger.debug(f"Connected socket {socket_id} to unknown {address}")
                return
            logger.debug(f"Connected device {device}")
            self._socket_ids[socket_id] = device

    def _handle_disconnect(self, socket_id: Optional[int], address: str) -> None:
        with self._lock:
            device = self._devices.get(address)
            if device is not None:
                logger.debug(f"Disconnected device {device}")
            else:
                logger.debug(f"Disconnected socket {socket_id} from {address}")
            self._socket_ids.pop(socket_id, None)

    @property
    def socket_ids(self) -> Dict[int, Device]:
        """Snapshot of the socket handle to Device index."""
        with self._lock:
            return dict(self._socket_ids)
