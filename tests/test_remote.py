import pytest

from roomba_gateway.protocol import FRAME_BUFFER_ERROR, NO_RESPONSE, ack_frame
from roomba_remote.main import describe_reply, parse_frame
from roomba_remote.replies import (
    ReplyKind,
    classify_reply,
    decode_sensor_reply,
    expected_length,
)
from roomba_remote.udp_client import parse_address

from conftest import FAKE_JPEG


class TestClassifyReply:
    def test_ack(self):
        reply = classify_reply(ack_frame(5))
        assert reply.kind is ReplyKind.ACK
        assert reply.acked_length == 5

    def test_no_response_with_or_without_terminator(self):
        assert classify_reply(NO_RESPONSE).kind is ReplyKind.NO_RESPONSE
        assert classify_reply(b"No reply from roomba").kind is ReplyKind.NO_RESPONSE

    def test_frame_buffer_error(self):
        assert classify_reply(FRAME_BUFFER_ERROR).kind is ReplyKind.FRAME_BUFFER_ERROR

    def test_image(self):
        assert classify_reply(FAKE_JPEG).kind is ReplyKind.IMAGE

    def test_sensor_data(self):
        reply = classify_reply(bytes([7, 1, 2]))
        assert reply.kind is ReplyKind.SENSOR_DATA
        assert reply.packet_id == 7
        assert reply.payload == b"\x01\x02"

    def test_longer_ack_prefix_is_sensor_data(self):
        assert classify_reply(b"ack12").kind is ReplyKind.SENSOR_DATA

    def test_four_bytes_starting_with_a_is_sensor_data(self):
        reply = classify_reply(b"a\x01\x02\x03")
        assert reply.kind is ReplyKind.SENSOR_DATA
        assert reply.packet_id == 0x61

    def test_ack_shape_is_sensor_data_without_acks(self):
        reply = classify_reply(b"ack\x02", expect_ack=False)
        assert reply.kind is ReplyKind.SENSOR_DATA
        assert reply.packet_id == ord("a")


def sensor_reply(packet_id, payload):
    return classify_reply(bytes([packet_id]) + bytes(payload))


class TestDecodeSensorReply:
    @pytest.mark.parametrize("group,length", [
        (0, 26), (1, 10), (2, 6), (3, 10), (4, 14), (5, 12),
        (6, 52), (100, 80), (101, 28), (106, 12), (107, 9),
    ])
    def test_group_lengths(self, group, length):
        assert expected_length(group) == length

    def test_single_packet(self):
        decoded = decode_sensor_reply(sensor_reply(7, [0x03]))
        assert decoded["values"] == {"bumps_wheeldrops": 3}
        assert decoded["expected_length"] == 1
        assert decoded["truncated"] is False
        assert decoded["extra"] == b""

    def test_single_two_byte_packet_is_big_endian(self):
        decoded = decode_sensor_reply(sensor_reply(22, [0x3A, 0x98]))
        assert decoded["values"] == {"voltage": 15000}

    def test_group_with_mixed_widths(self):
        payload = bytearray(52)
        payload[0] = 0x03
        payload[12:14] = (-5).to_bytes(2, "big", signed=True)
        payload[17:19] = (15000).to_bytes(2, "big")
        payload[21] = 0xFE
        payload[44:46] = (-200).to_bytes(2, "big", signed=True)
        payload[50:52] = (500).to_bytes(2, "big", signed=True)

        decoded = decode_sensor_reply(sensor_reply(6, payload))

        values = decoded["values"]
        assert len(values) == 36
        assert values["bumps_wheeldrops"] == 3
        assert values["distance"] == -5
        assert values["voltage"] == 15000
        assert values["temperature"] == -2
        assert values["velocity"] == -200
        assert values["velocity_left"] == 500
        assert decoded["truncated"] is False

    def test_short_payload_is_flagged(self):
        decoded = decode_sensor_reply(sensor_reply(100, bytes(13)))

        assert decoded["truncated"] is True
        assert decoded["expected_length"] == 80
        assert decoded["received_length"] == 13
        # the distance field straddles the end and is dropped
        assert "buttons" in decoded["values"]
        assert "distance" not in decoded["values"]

    def test_extra_bytes_are_reported(self):
        decoded = decode_sensor_reply(sensor_reply(7, [1, 2]))
        assert decoded["values"] == {"bumps_wheeldrops": 1}
        assert decoded["extra"] == b"\x02"

    def test_unknown_packet_id(self):
        with pytest.raises(ValueError):
            decode_sensor_reply(sensor_reply(99, [1]))

    def test_not_sensor_data(self):
        with pytest.raises(ValueError):
            decode_sensor_reply(classify_reply(NO_RESPONSE))


def test_describe_reply():
    assert describe_reply(classify_reply(b"ack\x02")) == "ack: gateway received 2 bytes"
    assert describe_reply(classify_reply(NO_RESPONSE)) == "No reply from roomba"
    assert describe_reply(classify_reply(bytes([7, 1]))) == "sensor packet 7: bumps_wheeldrops=1"
    assert describe_reply(classify_reply(bytes([7, 1, 2]))) == (
        "sensor packet 7: bumps_wheeldrops=1 (extra: [2])"
    )
    assert describe_reply(classify_reply(bytes([2, 0, 0]))) == (
        "sensor packet 2: infrared_opcode=0, buttons=0 (truncated, 2 of 6 bytes)"
    )
    assert describe_reply(classify_reply(bytes([99, 1]))) == "sensor packet 99: [1]"


def test_parse_frame():
    assert parse_frame(["142", "0x07"]) == bytes([142, 7])
    with pytest.raises(ValueError):
        parse_frame(["256"])
    with pytest.raises(ValueError):
        parse_frame([])


def test_parse_address():
    assert parse_address("192.168.50.192") == ("192.168.50.192", 2390)
    assert parse_address("10.0.0.2:5000") == ("10.0.0.2", 5000)
    with pytest.raises(ValueError):
        parse_address(":5000")
