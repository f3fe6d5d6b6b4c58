"""Decoders for Sphero 2.0 payloads.

Pure functions: payload bytes in, record out. Missing trailing bytes decode
as zero or empty so a short payload never raises.
"""
from __future__ import annotations

from ...models import RGB, Collision, DeviceInfo, Location, Position, Velocity


def _uint(data: bytes, offset: int, size: int) -> int:
    chunk = data[offset:offset + size]
    if len(chunk) < size:
        return 0
    return int.from_bytes(chunk, "big", signed=False)


def _int(data: bytes, offset: int, size: int) -> int:
    chunk = data[offset:offset + size]
    if len(chunk) < size:
        return 0
    return int.from_bytes(chunk, "big", signed=True)


def _ascii(data: bytes) -> str:
    return bytes(data).split(b"\x00", 1)[0].decode("ascii", errors="ignore").strip()


def device_info(data: bytes) -> DeviceInfo:
    """Decode a Bluetooth info response.

    Layout: name (16 bytes ASCII, NUL padded), address (12 bytes ASCII hex),
    one separator byte, ID colors (3 bytes).
    """
    return DeviceInfo(
        name=_ascii(data[0:16]),
        address=_ascii(data[16:28]),
        id=(_uint(data, 29, 1), _uint(data, 30, 1), _uint(data, 31, 1)),
    )


def rgb(data: bytes) -> RGB:
    return RGB(
        red=_uint(data, 0, 1),
        green=_uint(data, 1, 1),
        blue=_uint(data, 2, 1),
    )


def location(data: bytes) -> Location:
    """Decode a locator reading.

    Layout: x, y (int16), velocity x, velocity y (int16), speed (uint16).
    """
    return Location(
        position=Position(x=_int(data, 0, 2), y=_int(data, 2, 2)),
        velocity=Velocity(x=_int(data, 4, 2), y=_int(data, 6, 2)),
        speed=_uint(data, 8, 2),
    )


def collision(data: bytes) -> Collision:
    """Decode a collision detected message.

    Layout: x, y, z (int16), axis (uint8), x/y magnitude (int16),
    speed (uint8), timestamp (uint32).
    """
    return Collision(
        x=_int(data, 0, 2),
        y=_int(data, 2, 2),
        z=_int(data, 4, 2),
        axis=_uint(data, 6, 1),
        x_magnitude=_int(data, 7, 2),
        y_magnitude=_int(data, 9, 2),
        speed=_uint(data, 11, 1),
        timestamp=_uint(data, 12, 4),
    )
