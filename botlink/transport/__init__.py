"""Transport layer for Bluetooth robot sockets."""

from .base import Transport
from .serial import SerialTransport

__all__ = ["Transport", "SerialTransport"]
