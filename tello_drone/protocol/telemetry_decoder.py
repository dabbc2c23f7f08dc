"""
Turns validated packets and text replies into typed messages.

Binary packets are dispatched on their command id through a flat table of
payload decoders. Anything missing from the table is passed through as an
UnknownMessage so that new firmware never breaks a session.
"""

import dataclasses
import logging
import re
import struct
import time
from typing import Callable, Dict, Optional

from .messages import (
    AltitudeLimit,
    CommandId,
    CommandKind,
    CommandModeState,
    DataMessage,
    FlightData,
    LightInfo,
    LogMessage,
    Message,
    Packet,
    PayloadData,
    ResponseMessage,
    ResponseStatus,
    StateMessage,
    UnknownMessage,
    VersionInfo,
    WifiInfo,
)
from .packet_codec import MalformedPacket, PacketCodec

logger = logging.getLogger(__name__)


CONN_ACK_PREFIX = b"conn_ack:"
UNKNOWN_COMMAND_PREFIX = b"unknown command:"


def _bit(value: int, index: int) -> bool:
    return bool((value >> index) & 0x01)


FLIGHT_DATA_FORMAT = "<5hBBBhhBBBBBBB"
FLIGHT_DATA_SIZE = struct.calcsize(FLIGHT_DATA_FORMAT)  # 24 bytes


def decode_flight_data(payload: bytes) -> FlightData:
    """
    Decode the periodic flight-data payload.

    Args:
        payload: Packet payload, at least 24 bytes.

    Returns:
        FlightData snapshot.
    """
    if len(payload) < FLIGHT_DATA_SIZE:
        raise ValueError(f"Data too short: {len(payload)} < {FLIGHT_DATA_SIZE}")

    (
        height,
        north_speed,
        east_speed,
        ground_speed,
        fly_time,
        sensors,
        imu_calibration_state,
        battery_percentage,
        battery_left,
        fly_time_left,
        status,
        fly_mode,
        throw_fly_timer,
        camera_state,
        electrical_machinery_state,
        front,
        temperature,
    ) = struct.unpack_from(FLIGHT_DATA_FORMAT, payload, 0)

    return FlightData(
        height=height,
        north_speed=north_speed,
        east_speed=east_speed,
        ground_speed=ground_speed,
        fly_time=fly_time,
        imu_state=_bit(sensors, 0),
        pressure_state=_bit(sensors, 1),
        down_visual_state=_bit(sensors, 2),
        power_state=_bit(sensors, 3),
        battery_state=_bit(sensors, 4),
        gravity_state=_bit(sensors, 5),
        wind_state=_bit(sensors, 7),
        imu_calibration_state=imu_calibration_state,
        battery_percentage=battery_percentage,
        battery_left=battery_left,
        fly_time_left=fly_time_left,
        em_sky=_bit(status, 0),
        em_ground=_bit(status, 1),
        em_open=_bit(status, 2),
        drone_hover=_bit(status, 3),
        outage_recording=_bit(status, 4),
        battery_low=_bit(status, 5),
        battery_lower=_bit(status, 6),
        factory_mode=_bit(status, 7),
        fly_mode=fly_mode,
        throw_fly_timer=throw_fly_timer,
        camera_state=camera_state,
        electrical_machinery_state=electrical_machinery_state,
        front_in=_bit(front, 0),
        front_out=_bit(front, 1),
        front_lsc=_bit(front, 2),
        temperature_height=_bit(temperature, 0),
    )


def decode_wifi(payload: bytes) -> WifiInfo:
    return WifiInfo(strength=payload[0], disturb=payload[1])


def decode_light(payload: bytes) -> LightInfo:
    return LightInfo(good=payload[0])


def decode_log_header(payload: bytes) -> LogMessage:
    (log_id,) = struct.unpack_from("<H", payload, 0)
    return LogMessage(log_id=log_id, message=bytes(payload[2:]))


def decode_version(payload: bytes) -> VersionInfo:
    if not payload:
        raise ValueError("Data too short: 0 < 1")
    text = bytes(payload[1:]).split(b"\x00", 1)[0]
    return VersionInfo(version=text.decode("ascii", errors="replace").strip())


def decode_alt_limit(payload: bytes) -> AltitudeLimit:
    (height,) = struct.unpack_from("<H", payload, 1)
    return AltitudeLimit(height=height)


def _no_payload(payload: bytes) -> None:
    return None


PAYLOAD_DECODERS: Dict[int, Callable[[bytes], Optional[PayloadData]]] = {
    CommandId.FLIGHT_MSG: decode_flight_data,
    CommandId.WIFI_MSG: decode_wifi,
    CommandId.LIGHT_MSG: decode_light,
    CommandId.LOG_HEADER_MSG: decode_log_header,
    CommandId.VERSION_MSG: decode_version,
    CommandId.ALT_LIMIT_MSG: decode_alt_limit,
    # Known, but carried as raw payload
    CommandId.TIME_CMD: _no_payload,
    CommandId.LOG_DATA_MSG: _no_payload,
    CommandId.LOG_CONFIG_MSG: _no_payload,
    CommandId.WIFI_REGION_CMD: _no_payload,
    CommandId.LOW_BAT_THRESHOLD_MSG: _no_payload,
    CommandId.ATT_LIMIT_MSG: _no_payload,
    CommandId.VIDEO_ENCODER_RATE_CMD: _no_payload,
    CommandId.VIDEO_RATE_QUERY: _no_payload,
    CommandId.EXPOSURE_CMD: _no_payload,
    CommandId.ERROR1_MSG: _no_payload,
    CommandId.ERROR2_MSG: _no_payload,
    CommandId.ACTIVATION_TIME_MSG: _no_payload,
    CommandId.LOADER_VERSION_MSG: _no_payload,
    CommandId.SMART_VIDEO_STATUS_MSG: _no_payload,
}

# Binary commands the drone echoes back as an acknowledgement
ACK_COMMANDS: Dict[int, CommandKind] = {
    CommandId.TAKEOFF_CMD: CommandKind.TAKE_OFF,
    CommandId.LAND_CMD: CommandKind.LAND,
    CommandId.PALM_LAND_CMD: CommandKind.PALM_LAND,
    CommandId.THROW_AND_GO_CMD: CommandKind.THROW_AND_GO,
    CommandId.FLIP_CMD: CommandKind.FLIP,
    CommandId.BOUNCE_CMD: CommandKind.BOUNCE,
}


def decode_packet(packet: Packet) -> Message:
    """
    Interpret a validated packet.

    Args:
        packet: Packet returned by PacketCodec.decode.

    Returns:
        ResponseMessage for echoed commands, DataMessage for known payloads,
        UnknownMessage for everything else.
    """
    kind = ACK_COMMANDS.get(packet.command_id)
    if kind is not None:
        ok = not packet.payload or packet.payload[0] == 0
        return ResponseMessage(
            status=ResponseStatus.OK if ok else ResponseStatus.ERROR,
            command=kind,
            sequence=packet.sequence,
            detail="" if ok else f"code {packet.payload[0]}",
        )

    decoder = PAYLOAD_DECODERS.get(packet.command_id)
    if decoder is not None:
        try:
            return DataMessage(packet=packet, data=decoder(packet.payload))
        except (ValueError, IndexError, struct.error) as e:
            logger.debug(f"Payload decode failed for 0x{packet.command_id:04x}: {e}")

    return UnknownMessage(
        packet_type=packet.packet_type,
        command_id=packet.command_id,
        sequence=packet.sequence,
        payload=packet.payload,
    )


_PAIR_SPLIT = re.compile(r"[:=]")
_STATE_FIELDS = {
    f.name: f.type for f in dataclasses.fields(CommandModeState) if f.name != "received_at"
}


def parse_state_line(
    text: str,
    previous: Optional[CommandModeState] = None,
    received_at: Optional[float] = None,
) -> CommandModeState:
    """
    Parse a command-mode state line such as ``"pitch:0;roll:0;yaw:45;...;"``.

    Unknown keys, empty segments and unparsable values are ignored. Missing
    keys keep their value from ``previous``.

    Args:
        text: Decoded state line.
        previous: Last state seen, or None.
        received_at: Monotonic receive time, defaults to now.

    Returns:
        New CommandModeState.
    """
    updates = {}
    for segment in text.strip().split(";"):
        parts = _PAIR_SPLIT.split(segment.strip(), maxsplit=1)
        if len(parts) != 2:
            continue
        key, raw = parts[0].strip(), parts[1].strip()
        field_type = _STATE_FIELDS.get(key)
        if field_type is None:
            continue
        try:
            value = float(raw)
            updates[key] = value if field_type is float else int(value)
        except (ValueError, OverflowError):
            logger.debug(f"Ignoring state value {key}={raw!r}")

    base = previous if previous is not None else CommandModeState()
    updates["received_at"] = time.monotonic() if received_at is None else received_at
    return dataclasses.replace(base, **updates)


def _looks_like_state_line(text: str) -> bool:
    return ";" in text and (":" in text or "=" in text)


def decode_datagram(
    data: bytes,
    previous_state: Optional[CommandModeState] = None,
    received_at: Optional[float] = None,
) -> Message:
    """
    Decode one datagram from the command or state socket.

    Args:
        data: Raw datagram.
        previous_state: Last state line seen, used to fill missing keys.
        received_at: Monotonic receive time for state lines.

    Returns:
        Decoded Message.

    Raises:
        DecodeError: If the datagram is neither a valid frame nor a known
            text reply.
    """
    if PacketCodec.is_framed(data):
        return decode_packet(PacketCodec.decode(data))

    if data.startswith(CONN_ACK_PREFIX):
        detail = bytes(data[len(CONN_ACK_PREFIX) :])
        return ResponseMessage(
            status=ResponseStatus.CONNECTED, detail=detail.hex() if detail else ""
        )

    if data.startswith(UNKNOWN_COMMAND_PREFIX):
        rest = bytes(data[len(UNKNOWN_COMMAND_PREFIX) :])
        detail = f"0x{struct.unpack_from('<H', rest)[0]:04x}" if len(rest) >= 2 else rest.hex()
        return ResponseMessage(status=ResponseStatus.UNKNOWN_COMMAND, detail=detail)

    try:
        text = bytes(data).decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise MalformedPacket(f"Undecodable datagram: {e}") from e

    lowered = text.lower()
    if lowered == "ok":
        return ResponseMessage(status=ResponseStatus.OK)
    if lowered.startswith("error"):
        return ResponseMessage(status=ResponseStatus.ERROR, detail=text)
    if _looks_like_state_line(text):
        return StateMessage(state=parse_state_line(text, previous_state, received_at))

    raise MalformedPacket(f"Unrecognized datagram: {text[:32]!r}")
