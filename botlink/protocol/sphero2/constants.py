"""Sphero 2.0 classic API constants."""
from __future__ import annotations

from enum import IntEnum

# Start of packet
SOP1 = 0xFF

ACKNOWLEDGEMENT_HEADER = b"\xff\xff"
ASYNCHRONOUS_HEADER = b"\xff\xfe"
HEADERS = (ACKNOWLEDGEMENT_HEADER, ASYNCHRONOUS_HEADER)

# SOP1 SOP2 MRSP SEQ DLEN CHK
MINIMUM_FRAME_SIZE = 6
# DLEN counts data bytes plus the checksum byte
LENGTH_OFFSET = 4
FRAME_OVERHEAD = 5
# Checksum covers everything after SOP1 and SOP2
CHECKSUM_START = 2


class ResponseType(IntEnum):
    """Second start-of-packet byte of robot to host frames."""
    ACKNOWLEDGEMENT = 0xFF
    ASYNCHRONOUS = 0xFE


class CommandType(IntEnum):
    """Second start-of-packet byte of host to robot frames."""
    REPLY = 0xFF
    NOREPLY = 0xFE


class CallbackType(IntEnum):
    """Sequence ids used to route acknowledgements to their decoder."""
    NONE = 0x00
    DEVICE_INFO = 0x01
    LOCATION = 0x10
    RGB = 0x15
    VERSION = 0x20
    UNKNOWN = 0xF0


class MessageType(IntEnum):
    """Id codes of asynchronous messages."""
    PRE_SLEEP = 0x05
    COLLISION_DETECTED = 0x07


class DeviceId(IntEnum):
    """Virtual device ids (DID)."""
    CORE = 0x00
    SPHERO = 0x02


class CoreCommand(IntEnum):
    """Command ids (CID) of the core device."""
    PING = 0x01
    VERSION = 0x02
    DEVICE_INFO = 0x11
    SLEEP = 0x22


class SpheroCommand(IntEnum):
    """Command ids (CID) of the sphero device."""
    HEADING = 0x01
    STABILIZATION = 0x02
    COLLISION_DETECTION = 0x12
    LOCATION_GET = 0x15
    RGB_LED_SET = 0x20
    BACK_LED = 0x21
    RGB_LED_GET = 0x22
    ROLL = 0x30
    BOOST = 0x31
    MOTION_TIMEOUT = 0x34


class RollState(IntEnum):
    STOP = 0x00
    NORMAL = 0x01
