"""Checksums used by the Tello binary framing.

The header carries a CRC-8 over its first three bytes and the full frame is
closed by a CRC-16. Both are the reflected (LSB-first) variants with the
non-zero seeds the firmware expects.
"""

CRC8_POLY = 0x8C  # 0x31 reflected
CRC8_SEED = 0x77

CRC16_POLY = 0x8408  # CCITT 0x1021 reflected
CRC16_SEED = 0x3692


def crc8(data: bytes, seed: int = CRC8_SEED) -> int:
    """
    Compute the header checksum.

    Args:
        data: Bytes to checksum.
        seed: Initial register value.

    Returns:
        8-bit checksum.
    """
    crc = seed
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x01:
                crc = (crc >> 1) ^ CRC8_POLY
            else:
                crc >>= 1
    return crc & 0xFF


def crc16(data: bytes, seed: int = CRC16_SEED) -> int:
    """
    Compute the frame checksum.

    Args:
        data: Bytes to checksum.
        seed: Initial register value.

    Returns:
        16-bit checksum.
    """
    crc = seed
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ CRC16_POLY
            else:
                crc >>= 1
    return crc & 0xFFFF
