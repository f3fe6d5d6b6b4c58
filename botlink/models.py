"""Immutable data models for robot discovery, sockets and decoded payloads.

All models are frozen dataclasses so they can be shared freely between the
transport callbacks, the device registry and event subscribers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

# Bluetooth serial port profile service class
SPP_UUID = "00001101-0000-1000-8000-00805f9b34fb"

SOCKET_BUFFER_SIZE = 4096  # bytes


@dataclass(frozen=True)
class Profile:
    """Static descriptor used to recognize a robot family from discovery data.

    Attributes:
        name: Human readable family name (e.g. 'Sphero 2.0')
        device_class: Bluetooth class of device reported during discovery
        uuid: Service UUID the robot exposes and the socket connects to
        name_prefix: Substring expected in the advertised device name
    """
    name: str
    device_class: int
    uuid: str
    name_prefix: str = ""


@dataclass(frozen=True)
class DeviceDescriptor:
    """One entry of a discovery scan as reported by the transport.

    Attributes:
        address: Opaque device address, unique per physical robot
        name: Advertised device name
        device_class: Bluetooth class of device
        uuids: Service UUIDs offered by the device
        connected: Whether the OS reports an active link
        paired: Whether the device is paired with this host
    """
    address: str
    name: str = ""
    device_class: int = 0
    uuids: Tuple[str, ...] = ()
    connected: bool = False
    paired: bool = False

    def to_dict(self) -> dict:
        """Convert to a JSON serializable dict (used for the discovery cache)."""
        return {
            "address": self.address,
            "name": self.name,
            "device_class": self.device_class,
            "uuids": list(self.uuids),
            "connected": self.connected,
            "paired": self.paired,
        }


@dataclass(frozen=True)
class SocketProperties:
    """Properties requested when a transport socket is created."""
    persistent: bool = False
    name: str = "botlink device"
    buffer_size: int = SOCKET_BUFFER_SIZE


@dataclass(frozen=True)
class SocketInfo:
    """Connection state of a transport socket.

    Attributes:
        socket_id: Transport level socket handle
        address: Address the socket is bound to, if any
        uuid: Service UUID of the connection, if any
        connected: Whether the socket is connected
        paused: Whether receive delivery is paused
    """
    socket_id: int
    address: Optional[str] = None
    uuid: Optional[str] = None
    connected: bool = False
    paused: bool = False


# Decoded payload records

@dataclass(frozen=True)
class DeviceInfo:
    """Bluetooth info reported by the robot."""
    name: str = ""
    address: str = ""
    id: Tuple[int, int, int] = (0, 0, 0)


@dataclass(frozen=True)
class RGB:
    """LED color."""
    red: int = 0
    green: int = 0
    blue: int = 0


@dataclass(frozen=True)
class Position:
    """Locator position in centimeters."""
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class Velocity:
    """Locator velocity in centimeters per second."""
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class Location:
    """Locator reading.

    Attributes:
        position: Position relative to the calibrated origin
        velocity: Current velocity vector
        speed: Speed over ground
    """
    position: Position = field(default_factory=Position)
    velocity: Velocity = field(default_factory=Velocity)
    speed: int = 0


@dataclass(frozen=True)
class Collision:
    """Collision detected notification.

    Attributes:
        x, y, z: Impact acceleration components
        axis: Bitmask of the axes that triggered (0x01 = X, 0x02 = Y)
        x_magnitude, y_magnitude: Power of the impact per axis
        speed: Speed at the moment of impact
        timestamp: Robot clock in milliseconds
    """
    x: int = 0
    y: int = 0
    z: int = 0
    axis: int = 0
    x_magnitude: int = 0
    y_magnitude: int = 0
    speed: int = 0
    timestamp: int = 0


# Events

class EventType(Enum):
    """Type of event emitted by devices and robot APIs."""
    DEVICE_STATE = "device_state"
    RECEIVE = "receive"
    CONNECT = "connect"
    DEVICE_INFO = "device_info"
    RGB = "rgb"
    LOCATION = "location"
    POSITION = "position"
    VELOCITY = "velocity"
    COLLISION = "collision"
    SLEEP = "sleep"


@dataclass(frozen=True)
class Event:
    """An event published on an EventStream.

    Attributes:
        event_type: Type of event
        data: Event payload (decoded record, raw bytes or state dict)
        sequence: Sequence id of the acknowledgement that produced it, if any
        step: Progress step for CONNECT events
    """
    event_type: EventType
    data: Any = None
    sequence: Optional[int] = None
    step: Optional[int] = None
