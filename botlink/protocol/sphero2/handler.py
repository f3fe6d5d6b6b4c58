"""Command models and serializer for the Sphero 2.0 classic API.

Commands are immutable dataclasses; Sphero2Handler turns them into signed
packets. The set of commands is closed: anything else is a programming
error and raises UnknownCommandError.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from ...errors import UnknownCommandError
from .checksum import compute_checksum
from .constants import (
    SOP1,
    CallbackType,
    CommandType,
    CoreCommand,
    DeviceId,
    RollState,
    SpheroCommand,
)


def _byte(value) -> int:
    return max(0, min(255, int(value)))


def _word(value) -> bytes:
    return max(0, min(0xFFFF, int(value))).to_bytes(2, "big")


@dataclass(frozen=True)
class CommandBuffer:
    """One host to robot packet.

    Attributes:
        device_id: Virtual device id (DID)
        command_id: Command id (CID)
        data: Command parameters
        sequence: Sequence id echoed by the acknowledgement
        reply: Whether the robot should acknowledge the packet
        characteristic: Target channel, None for the default stream
    """
    device_id: int
    command_id: int
    data: bytes = b""
    sequence: int = CallbackType.NONE
    reply: bool = False
    characteristic: Optional[str] = None

    def read(self) -> bytes:
        """Packet bytes without the checksum."""
        sop2 = CommandType.REPLY if self.reply else CommandType.NOREPLY
        return bytes([
            SOP1, sop2, self.device_id, self.command_id, self.sequence,
            len(self.data) + 1,
        ]) + bytes(self.data)

    def read_signed(self) -> bytes:
        """Packet bytes with the trailing checksum."""
        packet = self.read()
        return packet + bytes([compute_checksum(packet[2:])])

    def get_characteristic(self) -> Optional[str]:
        return self.characteristic


# Command types

@dataclass(frozen=True)
class Ping:
    pass


@dataclass(frozen=True)
class GetDeviceInfo:
    """Request name, address and ID colors."""
    pass


@dataclass(frozen=True)
class Sleep:
    """Put the robot to sleep.

    Attributes:
        wakeup: Seconds until automatic wakeup, 0 for none
        macro: Macro to run on wakeup
        orb_basic: orbBasic line to run on wakeup
    """
    wakeup: int = 0
    macro: int = 0
    orb_basic: int = 0


@dataclass(frozen=True)
class SetRGB:
    """Set the main LED color.

    Attributes:
        persistent: Store the color as user LED color
    """
    red: int = 0
    green: int = 0
    blue: int = 0
    persistent: bool = False


@dataclass(frozen=True)
class GetRGB:
    pass


@dataclass(frozen=True)
class SetBackLed:
    """Set the brightness (0-255) of the blue aiming LED."""
    brightness: int = 0


@dataclass(frozen=True)
class Roll:
    """Drive with `speed` (0-255) towards `heading` (0-359 degrees)."""
    speed: int = 0
    heading: int = 0
    state: int = RollState.NORMAL


@dataclass(frozen=True)
class Stop:
    heading: int = 0


@dataclass(frozen=True)
class Boost:
    enable: bool = True


@dataclass(frozen=True)
class SetHeading:
    """Declare the current orientation as `heading`."""
    heading: int = 0


@dataclass(frozen=True)
class Calibrate:
    """Turn to `heading` and make it the new zero heading."""
    heading: int = 0


@dataclass(frozen=True)
class GetLocation:
    pass


@dataclass(frozen=True)
class SetCollisionDetection:
    """Configure collision detection.

    Attributes:
        method: Detection method, 0 disables
        x_threshold, y_threshold: Impact thresholds per axis
        x_speed, y_speed: Speed dependent threshold increase per axis
        dead_time: Quiet period after a collision in 10 ms units
    """
    method: int = 0x01
    x_threshold: int = 0x60
    x_speed: int = 0x64
    y_threshold: int = 0x60
    y_speed: int = 0x64
    dead_time: int = 0x0A


@dataclass(frozen=True)
class SetMotionTimeout:
    """Stop driving after `timeout` milliseconds without a new roll command."""
    timeout: int = 2000


@dataclass(frozen=True)
class SetStabilization:
    enable: bool = True


Command = Union[
    Ping,
    GetDeviceInfo,
    Sleep,
    SetRGB,
    GetRGB,
    SetBackLed,
    Roll,
    Stop,
    Boost,
    SetHeading,
    Calibrate,
    GetLocation,
    SetCollisionDetection,
    SetMotionTimeout,
    SetStabilization,
]

Packet = Union[CommandBuffer, List[CommandBuffer]]


class Sphero2Handler:
    """Serializer for Sphero 2.0 commands.

    `COMMANDS` maps the symbolic names accepted by RobotApi.exec to command
    types; parameter dicts become dataclass fields.
    """

    COMMANDS: Dict[str, type] = {
        "ping": Ping,
        "get_device_info": GetDeviceInfo,
        "sleep": Sleep,
        "set_rgb": SetRGB,
        "get_rgb": GetRGB,
        "set_back_led": SetBackLed,
        "roll": Roll,
        "stop": Stop,
        "boost": Boost,
        "set_heading": SetHeading,
        "calibrate": Calibrate,
        "get_location": GetLocation,
        "set_collision_detection": SetCollisionDetection,
        "set_motion_timeout": SetMotionTimeout,
        "set_stabilization": SetStabilization,
    }

    def build(self, name: str, data: Optional[dict] = None) -> Command:
        """Create the command registered as `name` from a parameter dict.

        Raises:
            UnknownCommandError: Unknown name or unknown parameter
        """
        command_type = self.COMMANDS.get(name)
        if command_type is None:
            raise UnknownCommandError(f"Unknown command: {name}", command=name)
        try:
            return command_type(**(data or {}))
        except TypeError as e:
            raise UnknownCommandError(f"Invalid parameters for {name}: {e}", command=name) from e

    def get_buffer(self, name: str, data: Optional[dict] = None) -> Packet:
        return self.serialize(self.build(name, data))

    def serialize(self, command: Command) -> Packet:
        """Convert a command object to one packet or an ordered list of packets."""
        if isinstance(command, Ping):
            return CommandBuffer(DeviceId.CORE, CoreCommand.PING)
        elif isinstance(command, GetDeviceInfo):
            return CommandBuffer(DeviceId.CORE, CoreCommand.DEVICE_INFO,
                                 sequence=CallbackType.DEVICE_INFO, reply=True)
        elif isinstance(command, Sleep):
            return CommandBuffer(DeviceId.CORE, CoreCommand.SLEEP,
                                 _word(command.wakeup) + bytes([_byte(command.macro)])
                                 + _word(command.orb_basic))
        elif isinstance(command, SetRGB):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.RGB_LED_SET, bytes([
                _byte(command.red), _byte(command.green), _byte(command.blue),
                1 if command.persistent else 0,
            ]))
        elif isinstance(command, GetRGB):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.RGB_LED_GET,
                                 sequence=CallbackType.RGB, reply=True)
        elif isinstance(command, SetBackLed):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.BACK_LED,
                                 bytes([_byte(command.brightness)]))
        elif isinstance(command, Roll):
            return self._roll(command.speed, command.heading, command.state)
        elif isinstance(command, Stop):
            return self._roll(0, command.heading, RollState.STOP)
        elif isinstance(command, Boost):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.BOOST,
                                 bytes([1 if command.enable else 0]))
        elif isinstance(command, SetHeading):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.HEADING,
                                 _word(command.heading % 360))
        elif isinstance(command, Calibrate):
            return [
                self._roll(0, command.heading, RollState.STOP),
                self.serialize(SetHeading(0)),
                self.serialize(SetBackLed(0)),
            ]
        elif isinstance(command, GetLocation):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.LOCATION_GET,
                                 sequence=CallbackType.LOCATION, reply=True)
        elif isinstance(command, SetCollisionDetection):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.COLLISION_DETECTION, bytes([
                _byte(command.method),
                _byte(command.x_threshold), _byte(command.x_speed),
                _byte(command.y_threshold), _byte(command.y_speed),
                _byte(command.dead_time),
            ]))
        elif isinstance(command, SetMotionTimeout):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.MOTION_TIMEOUT,
                                 _word(command.timeout))
        elif isinstance(command, SetStabilization):
            return CommandBuffer(DeviceId.SPHERO, SpheroCommand.STABILIZATION,
                                 bytes([1 if command.enable else 0]))
        else:
            raise UnknownCommandError(f"Unknown command type: {type(command)}", command=command)

    @staticmethod
    def _roll(speed, heading, state) -> CommandBuffer:
        return CommandBuffer(DeviceId.SPHERO, SpheroCommand.ROLL,
                             bytes([_byte(speed)]) + _word(int(heading) % 360)
                             + bytes([_byte(state)]))
