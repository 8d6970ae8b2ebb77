import pytest

from roomba_gateway.protocol import (
    FRAME_BUFFER_ERROR,
    NO_RESPONSE,
    Capture,
    ConfigKind,
    MalformedFrame,
    PassThrough,
    PeripheralConfig,
    ack_frame,
    classify,
)


class TestClassify:
    def test_capture(self):
        assert classify(bytes([200])) == Capture()

    def test_capture_ignores_trailing_bytes(self):
        assert classify(bytes([200, 9, 9])) == Capture()

    @pytest.mark.parametrize(
        "opcode,kind",
        [(201, ConfigKind.QUALITY), (202, ConfigKind.FRAME_SIZE), (203, ConfigKind.FLASH)],
    )
    def test_config_opcodes(self, opcode, kind):
        assert classify(bytes([opcode, 77])) == PeripheralConfig(kind=kind, value=77)

    def test_config_keeps_out_of_range_value_for_handler(self):
        assert classify(bytes([201, 250])) == PeripheralConfig(ConfigKind.QUALITY, 250)

    @pytest.mark.parametrize("frame", [[128], [131], [137, 0, 100, 128, 0], [142, 6], [199], [204, 1], [255]])
    def test_everything_else_passes_through(self, frame):
        command = classify(bytes(frame))
        assert isinstance(command, PassThrough)
        assert command.data == bytes(frame)

    def test_passthrough_flags(self):
        assert classify(bytes([128])).is_start
        assert classify(bytes([142, 7])).is_sensor_query
        assert not classify(bytes([131])).is_sensor_query

    def test_accepts_bytearray(self):
        assert classify(bytearray([142, 7])) == PassThrough(b"\x8e\x07")


class TestMalformed:
    def test_empty(self):
        with pytest.raises(MalformedFrame):
            classify(b"")

    def test_too_long(self):
        with pytest.raises(MalformedFrame):
            classify(bytes(256))

    def test_max_length_is_fine(self):
        assert isinstance(classify(bytes([137]) + bytes(254)), PassThrough)

    @pytest.mark.parametrize("opcode", [201, 202, 203])
    def test_config_without_parameter(self, opcode):
        with pytest.raises(MalformedFrame):
            classify(bytes([opcode]))

    def test_sensor_query_without_packet_id(self):
        with pytest.raises(MalformedFrame):
            classify(bytes([142]))


def test_ack_frame_carries_length():
    assert ack_frame(2) == b"ack\x02"
    assert ack_frame(255) == b"ack\xff"
    assert ack_frame(0) == b"ack\x00"


def test_ack_frame_truncates_length_to_one_byte():
    assert ack_frame(258) == b"ack\x02"


def test_sentinels():
    assert NO_RESPONSE.startswith(b"No reply from roomba")
    assert len(NO_RESPONSE) == 21
    assert FRAME_BUFFER_ERROR == b"Error getting frame buffer"
