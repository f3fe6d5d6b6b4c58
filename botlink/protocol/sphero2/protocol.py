"""Sphero 2.0 frame classification and dispatch.

Frames are `[SOP1][SOP2][MRSP|ID][SEQ][DLEN][data...][CHK]`. SOP2 tells
acknowledgements (0xFF) from asynchronous messages (0xFE). Acknowledgements
are routed by their sequence id, asynchronous messages by their id code.
Corrupt frames are dropped silently by the stream reader.
"""
from __future__ import annotations

import logging
from typing import List

from ...models import Event, EventType
from ..base import Protocol
from ..reader import StreamReader
from . import decoder
from .checksum import frame_size, verify_checksum
from .constants import (
    FRAME_OVERHEAD,
    HEADERS,
    MINIMUM_FRAME_SIZE,
    CallbackType,
    MessageType,
    ResponseType,
)

logger = logging.getLogger(__name__)


class Sphero2Protocol(Protocol):
    """Streaming decoder for Sphero 2.0 robot to host traffic."""

    def __init__(self):
        self._reader = StreamReader(
            headers=HEADERS,
            minimum_size=MINIMUM_FRAME_SIZE,
            frame_size=frame_size,
            checksum=verify_checksum,
        )

    @property
    def name(self) -> str:
        return "sphero2"

    @property
    def reader(self) -> StreamReader:
        return self._reader

    def on_bytes(self, data: bytes) -> List[Event]:
        events: List[Event] = []
        frame = self._reader.read_by_header(data)
        while frame is not None:
            events.extend(self.decode_frame(frame))
            frame = self._reader.read_by_header()
        return events

    def reset(self) -> None:
        self._reader.clear()

    def decode_frame(self, frame: bytes) -> List[Event]:
        """Classify one validated frame and decode its payload."""
        message_type = frame[1]
        message_response = frame[2]
        seq = frame[3]
        length = frame[4]
        data = bytes(frame[FRAME_OVERHEAD:FRAME_OVERHEAD + length - 1])

        if message_type == ResponseType.ACKNOWLEDGEMENT:
            return self._decode_acknowledgement(message_response, seq, length, data)
        elif message_type == ResponseType.ASYNCHRONOUS:
            return self._decode_asynchronous(message_response, length, data)

        logger.error(f"Data error, unknown message type {message_type:#04x}: {frame.hex()}")
        return []

    def _decode_acknowledgement(self, response: int, seq: int, length: int,
                                data: bytes) -> List[Event]:
        if length == 1 and response == MessageType.PRE_SLEEP:
            logger.warning("Pre-sleep warning (10 sec)")
            return []

        if seq == CallbackType.DEVICE_INFO:
            info = decoder.device_info(data)
            logger.info(f"Name: {info.name} Address: {info.address} Id: {info.id}")
            return [Event(EventType.DEVICE_INFO, info, sequence=seq)]
        elif seq == CallbackType.RGB:
            return [Event(EventType.RGB, decoder.rgb(data), sequence=seq)]
        elif seq == CallbackType.LOCATION:
            location = decoder.location(data)
            return [
                Event(EventType.LOCATION, location, sequence=seq),
                Event(EventType.POSITION, location.position),
                Event(EventType.VELOCITY, location.velocity),
            ]

        logger.info(f"Received type {seq} with {length} bytes of unknown data: {data.hex()}")
        return []

    def _decode_asynchronous(self, response: int, length: int, data: bytes) -> List[Event]:
        if response == MessageType.PRE_SLEEP:
            logger.info("Sphero 2.0 is tired ...")
            return [Event(EventType.SLEEP)]
        elif response == MessageType.COLLISION_DETECTED:
            return [Event(EventType.COLLISION, decoder.collision(data))]

        logger.info(f"Received message {response} with {length} bytes of unknown data: {data.hex()}")
        return []
