"""Known robot profiles.

Profiles are matched in registration order and the first match wins, so
more specific signatures must be listed before more general ones.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from ..models import SPP_UUID, DeviceDescriptor, Profile

EV3 = Profile(
    name="Lego Mindstorms EV3",
    device_class=2060,
    uuid=SPP_UUID,
    name_prefix="EV3",
)

SPHERO_2 = Profile(
    name="Sphero 2.0",
    device_class=7936,
    uuid=SPP_UUID,
    name_prefix="Sphero",
)

MBOT = Profile(
    name="mBot",
    device_class=7936,
    uuid=SPP_UUID,
    name_prefix="Makeblock",
)

# Same signature as mBot: only reachable when mBot is not registered.
MBOT_RANGER = Profile(
    name="mBot Ranger",
    device_class=7936,
    uuid=SPP_UUID,
    name_prefix="Makeblock",
)

DEFAULT_PROFILES: Tuple[Profile, ...] = (EV3, SPHERO_2, MBOT, MBOT_RANGER)


def is_matching_profile(descriptor: DeviceDescriptor, profile: Profile) -> bool:
    """Check a discovery entry against one profile.

    All checks are AND-combined: device class equality, service UUID
    membership and name prefix substring.
    """
    if descriptor.device_class != profile.device_class:
        return False
    if profile.uuid not in descriptor.uuids:
        return False
    return profile.name_prefix in (descriptor.name or "")


def find_profile(
    descriptor: DeviceDescriptor,
    profiles: Iterable[Profile] = DEFAULT_PROFILES,
) -> Optional[Profile]:
    """Return the first profile matching `descriptor`, or None."""
    for profile in profiles:
        if is_matching_profile(descriptor, profile):
            return profile
    return None
