"""
Builders for outbound packets and command-mode text commands.

Binary builders return a Packet with sequence 0; the session stamps a
sequence number on the ones that need it before encoding.
"""

import struct
from datetime import datetime
from typing import Optional, Tuple

from .messages import CommandId, CommandKind, Flip, Packet, PacketType, VideoMode

CONN_REQUEST_PREFIX = b"conn_req:"

# Stick axes are 11-bit values centered on 1024
STICK_CENTER = 1024
STICK_SCALE = 660

MOVE_RANGE = (20, 500)  # cm
ROTATE_RANGE = (1, 3600)  # degrees
SPEED_RANGE = (10, 100)  # cm/s
RC_TEXT_SCALE = 100

MOVE_KINDS = (
    CommandKind.UP,
    CommandKind.DOWN,
    CommandKind.LEFT,
    CommandKind.RIGHT,
    CommandKind.FORWARD,
    CommandKind.BACK,
)
ROTATE_KINDS = (CommandKind.CW, CommandKind.CCW)

FLIP_LETTERS = {Flip.FORWARD: "f", Flip.LEFT: "l", Flip.BACK: "b", Flip.RIGHT: "r"}


def _clamp(value: int, bounds: Tuple[int, int]) -> int:
    return max(bounds[0], min(bounds[1], int(value)))


def conn_request(video_port: int) -> bytes:
    """
    Build the connection request announcing the local video port.

    Args:
        video_port: UDP port the video stream should be sent to.

    Returns:
        Datagram bytes.
    """
    return CONN_REQUEST_PREFIX + struct.pack("<H", video_port)


# Flight

def take_off() -> Packet:
    return Packet(PacketType.X68, CommandId.TAKEOFF_CMD)


def land() -> Packet:
    return Packet(PacketType.X68, CommandId.LAND_CMD, payload=b"\x00")


def palm_land() -> Packet:
    return Packet(PacketType.X68, CommandId.PALM_LAND_CMD, payload=b"\x00")


def throw_and_go() -> Packet:
    return Packet(PacketType.X48, CommandId.THROW_AND_GO_CMD, payload=b"\x00")


def flip(direction: Flip) -> Packet:
    return Packet(PacketType.X70, CommandId.FLIP_CMD, payload=bytes([int(direction)]))


def bounce(enable: bool = True) -> Packet:
    return Packet(PacketType.X68, CommandId.BOUNCE_CMD, payload=b"\x30" if enable else b"\x31")


# Settings and queries

def get_version() -> Packet:
    return Packet(PacketType.X48, CommandId.VERSION_MSG)


def get_alt_limit() -> Packet:
    return Packet(PacketType.X68, CommandId.ALT_LIMIT_MSG)


def set_alt_limit(limit: int) -> Packet:
    return Packet(PacketType.X68, CommandId.ALT_LIMIT_CMD, payload=bytes([limit & 0xFF, 0]))


def get_att_angle() -> Packet:
    return Packet(PacketType.X68, CommandId.ATT_LIMIT_MSG)


def set_att_angle() -> Packet:
    # Fixed limit, the firmware encoding of arbitrary angles is not known
    return Packet(PacketType.X68, CommandId.ATT_LIMIT_CMD, payload=bytes([0, 0, 10, 0x41]))


def get_battery_threshold() -> Packet:
    return Packet(PacketType.X68, CommandId.LOW_BAT_THRESHOLD_MSG)


def set_battery_threshold(threshold: int) -> Packet:
    return Packet(PacketType.X68, CommandId.LOW_BAT_THRESHOLD_CMD, payload=bytes([threshold & 0xFF]))


def get_region() -> Packet:
    return Packet(PacketType.X48, CommandId.WIFI_REGION_CMD)


# Camera

def start_video() -> Packet:
    """Start streaming and request a key frame (SPS/PPS)."""
    return Packet(PacketType.X60, CommandId.VIDEO_START_CMD)


def set_video_mode(mode: VideoMode) -> Packet:
    return Packet(PacketType.X68, CommandId.VIDEO_START_CMD, payload=bytes([int(mode)]))


def set_exposure(level: int) -> Packet:
    """Exposure level 0, 1 or 2."""
    return Packet(PacketType.X48, CommandId.EXPOSURE_CMD, payload=bytes([level & 0xFF]))


def set_video_bitrate(rate: int) -> Packet:
    return Packet(PacketType.X68, CommandId.VIDEO_ENCODER_RATE_CMD, payload=bytes([rate & 0xFF]))


def take_picture() -> Packet:
    return Packet(PacketType.X68, CommandId.TAKE_PICTURE_CMD)


# Replies to drone requests

def log_ack(log_id: int) -> Packet:
    """Acknowledge a log header."""
    return Packet(PacketType.X50, CommandId.LOG_HEADER_MSG, payload=struct.pack("<H", log_id))


def date_time(now: Optional[datetime] = None) -> Packet:
    """
    Answer the drone's time request with the local date and time.

    Args:
        now: Timestamp to send, defaults to the local clock.

    Returns:
        Packet carrying the date/time payload.
    """
    now = now or datetime.now()
    payload = struct.pack(
        "<B7H",
        0,
        now.year,
        now.month,
        now.day,
        now.hour,
        now.minute,
        now.second,
        now.microsecond // 1000,
    )
    return Packet(PacketType.X50, CommandId.TIME_CMD, payload=payload)


def _axis(value: float) -> int:
    return int(STICK_CENTER + STICK_SCALE * value) & 0x7FF


def stick(
    left_right: float,
    forward_back: float,
    up_down: float,
    yaw: float,
    fast: bool = False,
    now: Optional[datetime] = None,
) -> Packet:
    """
    Build the RC stick packet.

    Axis layout in the 48-bit little-endian word:
    bits 0-10 left/right, 11-21 forward/back, 22-32 up/down,
    33-43 yaw, bit 44 fast mode. Followed by the local time.

    Args:
        left_right: Normalized axis in [-1, 1].
        forward_back: Normalized axis in [-1, 1].
        up_down: Normalized axis in [-1, 1].
        yaw: Normalized axis in [-1, 1].
        fast: Enable fast mode.
        now: Timestamp to append, defaults to the local clock.

    Returns:
        Stick packet (always sequence 0).
    """
    packed = (
        _axis(left_right)
        | _axis(forward_back) << 11
        | _axis(up_down) << 22
        | _axis(yaw) << 33
        | (1 if fast else 0) << 44
    )
    now = now or datetime.now()
    payload = packed.to_bytes(6, "little") + struct.pack(
        "<BBBH", now.hour, now.minute, now.second, now.microsecond // 1000
    )
    return Packet(PacketType.X60, CommandId.STICK_CMD, payload=payload)


def unpack_stick(payload: bytes) -> Tuple[int, int, int, int, bool]:
    """Split a stick payload back into its raw 11-bit axes and fast flag."""
    packed = int.from_bytes(payload[:6], "little")
    return (
        packed & 0x7FF,
        (packed >> 11) & 0x7FF,
        (packed >> 22) & 0x7FF,
        (packed >> 33) & 0x7FF,
        bool((packed >> 44) & 0x01),
    )


# Sequenced packets keep the caller's sequence, the rest always go out as 0
ZERO_SEQUENCE_COMMANDS = frozenset(
    {CommandId.FLIP_CMD, CommandId.STICK_CMD, CommandId.VIDEO_START_CMD, CommandId.LOG_HEADER_MSG}
)


def uses_sequence(packet: Packet) -> bool:
    return packet.command_id not in ZERO_SEQUENCE_COMMANDS


# Command-mode text protocol

def command_mode() -> bytes:
    return b"command"


def text_command(kind: CommandKind, *args: int) -> bytes:
    """
    Build a command-mode text command with its arguments clamped.

    Args:
        kind: Command to send.
        *args: Distance, angle, coordinates or speed, depending on kind.

    Returns:
        ASCII datagram.
    """
    if kind in MOVE_KINDS:
        values = [_clamp(args[0], MOVE_RANGE)]
    elif kind in ROTATE_KINDS:
        values = [_clamp(args[0], ROTATE_RANGE)]
    elif kind == CommandKind.SPEED:
        values = [_clamp(args[0], SPEED_RANGE)]
    elif kind == CommandKind.GO:
        x, y, z, speed = args
        values = [_clamp(x, (-500, 500)), _clamp(y, (-500, 500)), _clamp(z, (-500, 500))]
        values.append(_clamp(speed, SPEED_RANGE))
    elif kind == CommandKind.CURVE:
        *points, speed = args
        values = [_clamp(p, (-500, 500)) for p in points[:6]]
        values.append(_clamp(speed, (10, 60)))
    elif kind == CommandKind.FLIP:
        direction = Flip(args[0]) if args else Flip.FORWARD
        if direction not in FLIP_LETTERS:
            raise ValueError(f"Flip {direction.name} not available in command mode")
        return f"flip {FLIP_LETTERS[direction]}".encode("ascii")
    else:
        values = [int(a) for a in args]

    return " ".join([kind.value] + [str(v) for v in values]).encode("ascii")


def rc_text(left_right: float, forward_back: float, up_down: float, yaw: float) -> bytes:
    """Build the command-mode RC text, axes scaled to -100..100."""
    values = [
        int(round(max(-1.0, min(1.0, v)) * RC_TEXT_SCALE))
        for v in (left_right, forward_back, up_down, yaw)
    ]
    return ("rc " + " ".join(str(v) for v in values)).encode("ascii")
