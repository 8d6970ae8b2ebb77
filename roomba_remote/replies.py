"""
Classification of messages received from the gateway.

Handles:
- Sorting raw messages into acks, sentinels, images and sensor data
- Decoding sensor data into named Open Interface packet values
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from roomba_gateway.protocol import ACK_TEMPLATE, FRAME_BUFFER_ERROR, NO_RESPONSE

logger = logging.getLogger(__name__)

JPEG_SOI = b"\xff\xd8"

_NO_RESPONSE_TEXT = NO_RESPONSE.rstrip(b"\x00")


class PacketInfo(NamedTuple):
    name: str
    width: int
    signed: bool = False


# Open Interface sensor packets 7-58
PACKET_INFO: Dict[int, PacketInfo] = {
    7: PacketInfo("bumps_wheeldrops", 1),
    8: PacketInfo("wall", 1),
    9: PacketInfo("cliff_left", 1),
    10: PacketInfo("cliff_front_left", 1),
    11: PacketInfo("cliff_front_right", 1),
    12: PacketInfo("cliff_right", 1),
    13: PacketInfo("virtual_wall", 1),
    14: PacketInfo("overcurrents", 1),
    15: PacketInfo("dirt_detect", 1),
    16: PacketInfo("unused_16", 1),
    17: PacketInfo("infrared_opcode", 1),
    18: PacketInfo("buttons", 1),
    19: PacketInfo("distance", 2, signed=True),
    20: PacketInfo("angle", 2, signed=True),
    21: PacketInfo("charging_state", 1),
    22: PacketInfo("voltage", 2),
    23: PacketInfo("current", 2, signed=True),
    24: PacketInfo("temperature", 1, signed=True),
    25: PacketInfo("battery_charge", 2),
    26: PacketInfo("battery_capacity", 2),
    27: PacketInfo("wall_signal", 2),
    28: PacketInfo("cliff_left_signal", 2),
    29: PacketInfo("cliff_front_left_signal", 2),
    30: PacketInfo("cliff_front_right_signal", 2),
    31: PacketInfo("cliff_right_signal", 2),
    32: PacketInfo("unused_32", 1),
    33: PacketInfo("unused_33", 2),
    34: PacketInfo("charger_available", 1),
    35: PacketInfo("oi_mode", 1),
    36: PacketInfo("song_number", 1),
    37: PacketInfo("song_playing", 1),
    38: PacketInfo("oi_stream_num_packets", 1),
    39: PacketInfo("velocity", 2, signed=True),
    40: PacketInfo("radius", 2, signed=True),
    41: PacketInfo("velocity_right", 2, signed=True),
    42: PacketInfo("velocity_left", 2, signed=True),
    43: PacketInfo("encoder_counts_left", 2),
    44: PacketInfo("encoder_counts_right", 2),
    45: PacketInfo("light_bumper", 1),
    46: PacketInfo("light_bump_left", 2),
    47: PacketInfo("light_bump_front_left", 2),
    48: PacketInfo("light_bump_center_left", 2),
    49: PacketInfo("light_bump_center_right", 2),
    50: PacketInfo("light_bump_front_right", 2),
    51: PacketInfo("light_bump_right", 2),
    52: PacketInfo("infrared_opcode_left", 1),
    53: PacketInfo("infrared_opcode_right", 1),
    54: PacketInfo("left_motor_current", 2, signed=True),
    55: PacketInfo("right_motor_current", 2, signed=True),
    56: PacketInfo("main_brush_current", 2, signed=True),
    57: PacketInfo("side_brush_current", 2, signed=True),
    58: PacketInfo("stasis", 1),
}

# Group packet id -> inclusive range of packets it returns
SENSOR_GROUPS: Dict[int, Tuple[int, int]] = {
    0: (7, 26),
    1: (7, 16),
    2: (17, 20),
    3: (21, 26),
    4: (27, 34),
    5: (35, 42),
    6: (7, 42),
    100: (7, 58),
    101: (43, 58),
    106: (46, 51),
    107: (54, 58),
}


def packets_for(packet_id: int) -> List[int]:
    """
    List the packets a sensor query returns, in wire order.

    Raises:
        ValueError: If packet_id is neither a group nor a single packet
    """
    if packet_id in SENSOR_GROUPS:
        start, end = SENSOR_GROUPS[packet_id]
        return list(range(start, end + 1))
    if packet_id in PACKET_INFO:
        return [packet_id]
    raise ValueError(f"unknown sensor packet id {packet_id}")


def expected_length(packet_id: int) -> int:
    return sum(PACKET_INFO[p].width for p in packets_for(packet_id))


class ReplyKind(Enum):
    ACK = "ack"
    NO_RESPONSE = "no_response"
    FRAME_BUFFER_ERROR = "frame_buffer_error"
    IMAGE = "image"
    SENSOR_DATA = "sensor_data"


@dataclass
class Reply:
    """
    One message from the gateway.

    Attributes:
        kind: What the message is
        data: Raw bytes as received
        acked_length: Length byte of an ack (frame bytes the gateway kept)
        packet_id: Sensor packet id echoed at the start of sensor data
    """
    kind: ReplyKind
    data: bytes
    acked_length: Optional[int] = None
    packet_id: Optional[int] = None

    @property
    def payload(self) -> bytes:
        """Sensor bytes without the packet id prefix."""
        if self.kind is ReplyKind.SENSOR_DATA:
            return self.data[1:]
        return self.data


def classify_reply(data: bytes, expect_ack: bool = True) -> Reply:
    """
    Sort a gateway message into one of the ReplyKind categories.

    Args:
        data: Message as received
        expect_ack: Whether the transport carries acks (UDP only)

    Returns:
        Classified Reply
    """
    data = bytes(data)
    # Sensor data for packet id 0x61 would also start with "a"; no OI packet uses it.
    if expect_ack and len(data) == len(ACK_TEMPLATE) and data[:3] == ACK_TEMPLATE[:3]:
        return Reply(ReplyKind.ACK, data, acked_length=data[3])
    if data.startswith(_NO_RESPONSE_TEXT):
        return Reply(ReplyKind.NO_RESPONSE, data)
    if data.startswith(FRAME_BUFFER_ERROR):
        return Reply(ReplyKind.FRAME_BUFFER_ERROR, data)
    if data.startswith(JPEG_SOI):
        return Reply(ReplyKind.IMAGE, data)
    return Reply(ReplyKind.SENSOR_DATA, data, packet_id=data[0] if data else None)


def decode_sensor_reply(reply: Reply) -> dict:
    """
    Split a sensor reply into named packet values.

    Two-byte fields are big-endian. Packets whose bytes did not all
    arrive are left out of ``values`` and the result is marked truncated.

    Args:
        reply: A SENSOR_DATA reply

    Returns:
        Dict with packet_id, values, expected_length, received_length,
        truncated and extra (bytes past the expected length)

    Raises:
        ValueError: If the reply is not sensor data or its packet id is unknown
    """
    if reply.kind is not ReplyKind.SENSOR_DATA or reply.packet_id is None:
        raise ValueError(f"not a sensor reply: {reply.kind.value}")

    payload = reply.payload
    packets = packets_for(reply.packet_id)
    expected = sum(PACKET_INFO[p].width for p in packets)

    values = {}
    offset = 0
    for packet in packets:
        info = PACKET_INFO[packet]
        if offset + info.width > len(payload):
            break
        values[info.name] = int.from_bytes(
            payload[offset:offset + info.width], "big", signed=info.signed
        )
        offset += info.width

    truncated = len(payload) < expected
    if truncated:
        logger.debug(f"Sensor packet {reply.packet_id}: {len(payload)} of {expected} bytes")

    return {
        "packet_id": reply.packet_id,
        "values": values,
        "expected_length": expected,
        "received_length": len(payload),
        "truncated": truncated,
        "extra": payload[expected:],
    }
