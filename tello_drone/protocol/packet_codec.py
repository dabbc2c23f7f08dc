"""Binary framing for the command socket."""

import struct

from .crc import crc8, crc16
from .messages import Packet


class DecodeError(ValueError):
    """Raised when a datagram cannot be turned into a Packet."""


class MalformedPacket(DecodeError):
    """Buffer is truncated, mis-framed, or carries out-of-range fields."""


class ChecksumMismatch(DecodeError):
    """Header or frame checksum does not match the received bytes."""


class PacketCodec:
    """
    Codec for the 0xCC-framed binary packets.

    Frame format (both directions, little-endian):
    ┌────────────────────────────────────────────────────────────────┐
    │ Byte Offset │ Size    │ Field            │ Description         │
    ├─────────────┼─────────┼──────────────────┼─────────────────────┤
    │ 0           │ 1       │ start            │ 0xCC                │
    │ 1           │ 2       │ size             │ total_len << 3      │
    │ 3           │ 1       │ crc8             │ over bytes 0..2     │
    │ 4           │ 1       │ packet_type      │ 0x48, 0x50, ...     │
    │ 5           │ 2       │ command_id       │ uint16              │
    │ 7           │ 2       │ sequence         │ uint16              │
    │ 9           │ N       │ payload          │ raw bytes           │
    │ 9+N         │ 2       │ crc16            │ over bytes 0..8+N   │
    └────────────────────────────────────────────────────────────────┘
    """

    START_OF_PACKET = 0xCC

    PREFIX_FORMAT = "<BH"
    PREFIX_SIZE = struct.calcsize(PREFIX_FORMAT)  # 3 bytes
    BODY_FORMAT = "<BHH"
    BODY_SIZE = struct.calcsize(BODY_FORMAT)  # 5 bytes
    HEADER_SIZE = PREFIX_SIZE + 1 + BODY_SIZE  # 9 bytes
    TRAILER_SIZE = 2
    MIN_SIZE = HEADER_SIZE + TRAILER_SIZE  # 11 bytes

    # size field keeps 3 flag bits below the length
    MAX_SIZE = 0xFFFF >> 3

    @staticmethod
    def encode(packet: Packet) -> bytes:
        """
        Encode a packet to its wire representation.

        Args:
            packet: Packet to encode.

        Returns:
            Binary data including both checksums.

        Raises:
            MalformedPacket: If a field does not fit its wire width.
        """
        total = len(packet.payload) + PacketCodec.MIN_SIZE
        if total > PacketCodec.MAX_SIZE:
            raise MalformedPacket(f"Payload too long: {len(packet.payload)} bytes")
        if not 0 <= packet.packet_type <= 0xFF:
            raise MalformedPacket(f"Packet type out of range: {packet.packet_type}")
        if not 0 <= packet.command_id <= 0xFFFF:
            raise MalformedPacket(f"Command id out of range: {packet.command_id}")
        if not 0 <= packet.sequence <= 0xFFFF:
            raise MalformedPacket(f"Sequence out of range: {packet.sequence}")

        prefix = struct.pack(
            PacketCodec.PREFIX_FORMAT, PacketCodec.START_OF_PACKET, total << 3
        )
        body = struct.pack(
            PacketCodec.BODY_FORMAT,
            packet.packet_type,
            packet.command_id,
            packet.sequence,
        )
        frame = prefix + bytes([crc8(prefix)]) + body + packet.payload
        return frame + struct.pack("<H", crc16(frame))

    @staticmethod
    def decode(data: bytes) -> Packet:
        """
        Decode a binary packet.

        Never raises anything but DecodeError subclasses, so it is safe to run
        on arbitrary datagrams.

        Args:
            data: Binary data.

        Returns:
            Packet.

        Raises:
            MalformedPacket: If the buffer is not a well-formed frame.
            ChecksumMismatch: If either checksum fails.
        """
        if len(data) < PacketCodec.MIN_SIZE:
            raise MalformedPacket(f"Data too short: {len(data)} < {PacketCodec.MIN_SIZE}")

        # Header check first: a corrupted marker or size byte is a checksum failure
        if crc8(data[: PacketCodec.PREFIX_SIZE]) != data[PacketCodec.PREFIX_SIZE]:
            raise ChecksumMismatch("Header CRC8 mismatch")

        start, size = struct.unpack_from(PacketCodec.PREFIX_FORMAT, data, 0)
        if start != PacketCodec.START_OF_PACKET:
            raise MalformedPacket(f"Bad start marker: 0x{start:02x}")

        total = size >> 3
        if total != len(data):
            raise MalformedPacket(f"Length mismatch: header says {total}, got {len(data)}")

        (received_crc16,) = struct.unpack_from("<H", data, total - PacketCodec.TRAILER_SIZE)
        if crc16(data[: total - PacketCodec.TRAILER_SIZE]) != received_crc16:
            raise ChecksumMismatch("Frame CRC16 mismatch")

        packet_type, command_id, sequence = struct.unpack_from(
            PacketCodec.BODY_FORMAT, data, PacketCodec.PREFIX_SIZE + 1
        )
        payload = bytes(data[PacketCodec.HEADER_SIZE : total - PacketCodec.TRAILER_SIZE])

        return Packet(
            packet_type=packet_type,
            command_id=command_id,
            sequence=sequence,
            payload=payload,
        )

    @staticmethod
    def is_framed(data: bytes) -> bool:
        """Check whether a datagram starts with the binary start marker."""
        return len(data) > 0 and data[0] == PacketCodec.START_OF_PACKET
