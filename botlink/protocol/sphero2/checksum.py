"""Sphero 2.0 packet checksum."""
from __future__ import annotations

from .constants import CHECKSUM_START, FRAME_OVERHEAD, LENGTH_OFFSET, MINIMUM_FRAME_SIZE, SOP1


def compute_checksum(data: bytes) -> int:
    """Sum of `data` modulo 256, inverted."""
    return (sum(data) % 256) ^ 0xFF


def frame_size(buffer: bytes) -> int:
    """Length of the frame starting at buffer[0]."""
    return buffer[LENGTH_OFFSET] + FRAME_OVERHEAD


def verify_checksum(frame: bytes) -> bool:
    """Check the trailing checksum byte of a complete frame."""
    if not frame or frame[0] != SOP1 or len(frame) < MINIMUM_FRAME_SIZE:
        return False
    end = frame_size(frame) - 1
    if len(frame) <= end:
        return False
    return frame[end] == compute_checksum(frame[CHECKSUM_START:end])
