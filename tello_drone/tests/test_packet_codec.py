"""Tests for the binary packet codec."""

import pytest
import struct

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tello_drone.protocol.messages import CommandId, Packet, PacketType
from tello_drone.protocol.packet_codec import (
    ChecksumMismatch,
    DecodeError,
    MalformedPacket,
    PacketCodec,
)

TAKEOFF_FRAME = bytes.fromhex("cc58007c685400e401c216")


class TestEncode:
    """Test packet encoding."""

    def test_known_takeoff_frame(self):
        """Test encoding matches a captured take-off packet."""
        packet = Packet(PacketType.X68, CommandId.TAKEOFF_CMD, sequence=0x01E4)
        assert PacketCodec.encode(packet) == TAKEOFF_FRAME

    def test_layout(self):
        """Test header fields land at their offsets."""
        packet = Packet(PacketType.X50, CommandId.LOG_HEADER_MSG, sequence=7, payload=b"\x01\x02")
        data = PacketCodec.encode(packet)

        assert len(data) == 13
        assert data[0] == 0xCC
        assert struct.unpack_from("<H", data, 1)[0] == 13 << 3
        assert data[4] == 0x50
        assert struct.unpack_from("<H", data, 5)[0] == 0x1050
        assert struct.unpack_from("<H", data, 7)[0] == 7
        assert data[9:11] == b"\x01\x02"

    def test_sequence_out_of_range(self):
        """Test a sequence wider than 16 bits is rejected."""
        with pytest.raises(MalformedPacket):
            PacketCodec.encode(Packet(PacketType.X48, 0x45, sequence=0x10000))

    def test_payload_too_long(self):
        """Test a payload that does not fit the size field is rejected."""
        with pytest.raises(MalformedPacket):
            PacketCodec.encode(Packet(PacketType.X48, 0x45, payload=b"\x00" * 9000))


class TestDecode:
    """Test packet decoding."""

    def test_known_takeoff_frame(self):
        """Test decoding a captured take-off packet."""
        packet = PacketCodec.decode(TAKEOFF_FRAME)

        assert packet.packet_type == 0x68
        assert packet.command_id == CommandId.TAKEOFF_CMD
        assert packet.sequence == 0x01E4
        assert packet.payload == b""

    @pytest.mark.parametrize(
        "packet",
        [
            Packet(PacketType.X68, CommandId.TAKEOFF_CMD, 1),
            Packet(PacketType.X68, CommandId.LAND_CMD, 2, b"\x00"),
            Packet(PacketType.X60, CommandId.STICK_CMD, 0, bytes(11)),
            Packet(PacketType.X48, CommandId.VERSION_MSG, 0xFFFF, b"\x00" + b"01.04.92.01"),
            Packet(0x99, 0xBEEF, 42, bytes(range(200))),
        ],
    )
    def test_roundtrip(self, packet):
        """Test decode(encode(p)) == p."""
        assert PacketCodec.decode(PacketCodec.encode(packet)) == packet

    def test_every_byte_flip_is_checksum_mismatch(self):
        """Test corrupting any single byte is caught by a checksum."""
        data = PacketCodec.encode(
            Packet(PacketType.X48, CommandId.FLIGHT_MSG, 300, bytes(range(24)))
        )
        for i in range(len(data)):
            corrupted = bytearray(data)
            corrupted[i] ^= 0xFF
            with pytest.raises(ChecksumMismatch):
                PacketCodec.decode(bytes(corrupted))

    def test_too_short(self):
        """Test truncated buffers are malformed."""
        with pytest.raises(MalformedPacket, match="too short"):
            PacketCodec.decode(TAKEOFF_FRAME[:10])

    def test_truncated_frame_is_malformed(self):
        """Test a frame missing bytes after a valid header."""
        data = PacketCodec.encode(Packet(PacketType.X48, 0x45, 1, b"abcdef"))
        with pytest.raises(MalformedPacket, match="Length mismatch"):
            PacketCodec.decode(data[:-3])

    def test_wrong_start_marker(self):
        """Test a frame with a valid header checksum but another marker."""
        from tello_drone.protocol.crc import crc8

        prefix = b"\xab" + struct.pack("<H", 11 << 3)
        data = prefix + bytes([crc8(prefix)]) + bytes(7)
        with pytest.raises(MalformedPacket, match="start marker"):
            PacketCodec.decode(data)

    @pytest.mark.parametrize(
        "data",
        [b"", b"\xcc", b"ok", b"\x00" * 11, b"\xcc" * 64, bytes(range(256))],
    )
    def test_noise_only_raises_decode_error(self, data):
        """Test arbitrary input never raises anything but DecodeError."""
        with pytest.raises(DecodeError):
            PacketCodec.decode(data)

    def test_decode_error_is_value_error(self):
        """Test the error hierarchy."""
        assert issubclass(MalformedPacket, DecodeError)
        assert issubclass(ChecksumMismatch, DecodeError)
        assert issubclass(DecodeError, ValueError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
