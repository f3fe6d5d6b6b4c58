"""Bluetooth connection lifecycle for robots.

This module provides:
- Per-robot connection state (Device)
- Discovery, profile matching and socket routing (Devices)
- Known robot profiles and the matching predicate
- Rescan throttling (Throttle)
"""

from .device import Device
from .devices import Devices
from .profiles import (
    DEFAULT_PROFILES,
    EV3,
    MBOT,
    MBOT_RANGER,
    SPHERO_2,
    find_profile,
    is_matching_profile,
)
from .throttle import Throttle

__all__ = [
    'Device',
    'Devices',
    'Throttle',

    # Profiles
    'DEFAULT_PROFILES',
    'EV3',
    'MBOT',
    'MBOT_RANGER',
    'SPHERO_2',
    'find_profile',
    'is_matching_profile',
]
