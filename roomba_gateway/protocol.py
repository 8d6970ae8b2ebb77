"""
Wire protocol shared by the datagram and WebSocket transports.

Handles:
- Opcode constants for the Roomba Open Interface and the local camera range
- Frame classification (local camera command vs. pass-through to the robot)
- Acknowledgment frame and sentinel payloads
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)

# Roomba Open Interface opcodes the gateway reacts to
OP_START = 128
OP_SENSORS = 142

# Local camera range, never forwarded to the robot
OP_CAPTURE = 200
OP_SET_QUALITY = 201
OP_SET_FRAME_SIZE = 202
OP_SET_FLASH = 203

MAX_FRAME_LEN = 255
REPLY_CAPACITY = 255

MAX_QUALITY = 63
MAX_FRAME_SIZE = 13

ACK_TEMPLATE = b"ack0"
NO_RESPONSE = b"No reply from roomba\x00"
FRAME_BUFFER_ERROR = b"Error getting frame buffer"


class MalformedFrame(ValueError):
    """Raised for frames the gateway refuses to act on."""


class ConfigKind(Enum):
    QUALITY = "quality"
    FRAME_SIZE = "frame_size"
    FLASH = "flash"


_CONFIG_OPCODES = {
    OP_SET_QUALITY: ConfigKind.QUALITY,
    OP_SET_FRAME_SIZE: ConfigKind.FRAME_SIZE,
    OP_SET_FLASH: ConfigKind.FLASH,
}


@dataclass(frozen=True)
class PeripheralConfig:
    """Camera parameter change; value is the raw parameter byte."""
    kind: ConfigKind
    value: int


@dataclass(frozen=True)
class Capture:
    """Request for a single camera frame."""


@dataclass(frozen=True)
class PassThrough:
    """Bytes relayed verbatim to the robot."""
    data: bytes

    @property
    def opcode(self) -> int:
        return self.data[0]

    @property
    def is_sensor_query(self) -> bool:
        return self.opcode == OP_SENSORS

    @property
    def is_start(self) -> bool:
        return self.opcode == OP_START


Command = Union[PeripheralConfig, Capture, PassThrough]


def classify(frame: bytes) -> Command:
    """
    Classify an inbound frame by its opcode.

    A lone SENSORS opcode is rejected rather than relayed: the robot would
    wait for its packet id byte and swallow the first byte of the next
    frame as one.

    Args:
        frame: Complete frame as received from a transport

    Returns:
        PeripheralConfig, Capture or PassThrough

    Raises:
        MalformedFrame: If the frame is empty, too long, or lacks the
            parameter byte its opcode requires
    """
    frame = bytes(frame)
    if not frame:
        raise MalformedFrame("empty frame")
    if len(frame) > MAX_FRAME_LEN:
        raise MalformedFrame(f"frame length {len(frame)} exceeds {MAX_FRAME_LEN}")

    opcode = frame[0]

    if opcode == OP_CAPTURE:
        return Capture()

    kind = _CONFIG_OPCODES.get(opcode)
    if kind is not None:
        if len(frame) < 2:
            raise MalformedFrame(f"opcode {opcode} requires a parameter byte")
        return PeripheralConfig(kind=kind, value=frame[1])

    if opcode == OP_SENSORS and len(frame) < 2:
        raise MalformedFrame("sensor query without packet id")

    return PassThrough(data=frame)


def ack_frame(length: int) -> bytes:
    """Build the 4-byte datagram acknowledgment for a frame of `length` bytes."""
    ack = bytearray(ACK_TEMPLATE)
    ack[3] = length & 0xFF
    return bytes(ack)


def describe(frame: bytes) -> str:
    """Short hex rendering of a frame for debug logs."""
    return " ".join(f"{b:02x}" for b in frame[:32]) + (" ..." if len(frame) > 32 else "")
