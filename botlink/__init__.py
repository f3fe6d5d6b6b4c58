"""botlink - discovery, connection management and binary protocols for Bluetooth toy robots."""

from .api import SPHERO_2_FAMILY, RobotApi, RobotFamily
from .bluetooth import Device, Devices, Throttle
from .errors import BotlinkError, TransportError, UnknownCommandError
from .events import EventStream
from .models import (
    RGB,
    Collision,
    DeviceDescriptor,
    DeviceInfo,
    Event,
    EventType,
    Location,
    Position,
    Profile,
    SocketInfo,
    SocketProperties,
    Velocity,
)
from .monitoring import Monitoring
from .transport import SerialTransport, Transport

__all__ = [
    "RobotApi",
    "RobotFamily",
    "SPHERO_2_FAMILY",
    "Device",
    "Devices",
    "Throttle",
    "BotlinkError",
    "TransportError",
    "UnknownCommandError",
    "EventStream",
    "RGB",
    "Collision",
    "DeviceDescriptor",
    "DeviceInfo",
    "Event",
    "EventType",
    "Location",
    "Position",
    "Profile",
    "SocketInfo",
    "SocketProperties",
    "Velocity",
    "Monitoring",
    "SerialTransport",
    "Transport",
]
