"""Interfaces between the connection layer and robot protocol families.

A robot API composes a Connection (how bytes move) with a Protocol (what
the bytes mean) instead of subclassing per robot family.
"""
from __future__ import annotations

import typing
from abc import ABC, abstractmethod
from typing import List, Optional

from ..events import EventStream
from ..models import Event


class Connection(typing.Protocol):
    """What a robot API needs from a device connection."""

    def connect(self, callback=None) -> None: ...

    def disconnect(self, force: bool = False, callback=None) -> None: ...

    events: EventStream

    def send(self, data: bytes, characteristic: Optional[str] = None) -> None: ...

    def is_connected(self) -> bool: ...

    def reset(self) -> None: ...


class Protocol(ABC):
    """Abstract protocol for one robot family.

    Protocols handle:
    - Reassembling frames from arbitrarily chunked input
    - Validating and decoding frames into events
    """

    @abstractmethod
    def on_bytes(self, data: bytes) -> List[Event]:
        """Feed received bytes and return the events of all completed frames.

        Args:
            data: Next chunk of the byte stream, in delivery order

        Returns:
            Decoded events, possibly empty
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Drop any partially received frame."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Protocol identifier (e.g., 'sphero2')."""
        pass
