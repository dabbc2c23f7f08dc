"""Tests for the framing checksums."""

import pytest

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tello_drone.protocol.crc import crc8, crc16

# Take-off packet as sent by the official app
TAKEOFF_FRAME = bytes.fromhex("cc58007c685400e401c216")


class TestCrc8:
    """Test the header checksum."""

    def test_known_header(self):
        """Test the take-off header checksum."""
        assert crc8(TAKEOFF_FRAME[:3]) == TAKEOFF_FRAME[3]

    def test_empty_returns_seed(self):
        """Test that no data leaves the seed untouched."""
        assert crc8(b"") == 0x77
        assert crc8(b"", seed=0) == 0

    def test_range(self):
        """Test result always fits in one byte."""
        for data in (b"\x00", b"\xff" * 10, bytes(range(256))):
            assert 0 <= crc8(data) <= 0xFF


class TestCrc16:
    """Test the frame checksum."""

    def test_known_frame(self):
        """Test the take-off frame checksum."""
        expected = TAKEOFF_FRAME[-2] | (TAKEOFF_FRAME[-1] << 8)
        assert crc16(TAKEOFF_FRAME[:-2]) == expected

    def test_empty_returns_seed(self):
        """Test that no data leaves the seed untouched."""
        assert crc16(b"") == 0x3692

    def test_single_byte_change_detected(self):
        """Test that altering any byte changes the checksum."""
        data = bytearray(TAKEOFF_FRAME[:-2])
        reference = crc16(bytes(data))
        for i in range(len(data)):
            corrupted = bytearray(data)
            corrupted[i] ^= 0x01
            assert crc16(bytes(corrupted)) != reference


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
