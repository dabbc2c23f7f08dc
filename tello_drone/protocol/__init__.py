"""Wire protocol for the Tello drone: framing, checksums and message decoding."""

from .crc import crc8, crc16
from .messages import (
    PacketType,
    CommandId,
    CommandKind,
    ResponseStatus,
    Flip,
    VideoMode,
    Packet,
    FlightData,
    WifiInfo,
    LightInfo,
    LogMessage,
    VersionInfo,
    AltitudeLimit,
    CommandModeState,
    DataMessage,
    ResponseMessage,
    StateMessage,
    UnknownMessage,
    Message,
)
from .packet_codec import PacketCodec, DecodeError, MalformedPacket, ChecksumMismatch
from .telemetry_decoder import decode_datagram, decode_packet, parse_state_line
from . import commands

__all__ = [
    "crc8",
    "crc16",
    "PacketType",
    "CommandId",
    "CommandKind",
    "ResponseStatus",
    "Flip",
    "VideoMode",
    "Packet",
    "FlightData",
    "WifiInfo",
    "LightInfo",
    "LogMessage",
    "VersionInfo",
    "AltitudeLimit",
    "CommandModeState",
    "DataMessage",
    "ResponseMessage",
    "StateMessage",
    "UnknownMessage",
    "Message",
    "PacketCodec",
    "DecodeError",
    "MalformedPacket",
    "ChecksumMismatch",
    "decode_datagram",
    "decode_packet",
    "parse_state_line",
    "commands",
]
