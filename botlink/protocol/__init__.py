"""Protocol layer for binary robot protocols."""

from .base import Connection, Protocol
from .reader import StreamReader
from .sphero2 import Sphero2Handler, Sphero2Protocol

__all__ = [
    "Connection",
    "Protocol",
    "StreamReader",
    "Sphero2Handler",
    "Sphero2Protocol",
]
