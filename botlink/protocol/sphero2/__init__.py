"""Sphero 2.0 classic API: framing, decoders and command serializer."""

from .checksum import compute_checksum, verify_checksum
from .handler import CommandBuffer, Sphero2Handler
from .protocol import Sphero2Protocol

__all__ = [
    "CommandBuffer",
    "Sphero2Handler",
    "Sphero2Protocol",
    "compute_checksum",
    "verify_checksum",
]
