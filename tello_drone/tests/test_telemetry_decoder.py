"""Tests for telemetry decoding and datagram routing."""

import pytest
import struct

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tello_drone.protocol.messages import (
    AltitudeLimit,
    CommandId,
    CommandKind,
    CommandModeState,
    DataMessage,
    FlightData,
    LightInfo,
    LogMessage,
    Packet,
    PacketType,
    ResponseMessage,
    ResponseStatus,
    StateMessage,
    UnknownMessage,
    VersionInfo,
    WifiInfo,
)
from tello_drone.protocol.packet_codec import MalformedPacket, PacketCodec
from tello_drone.protocol.telemetry_decoder import (
    decode_datagram,
    decode_flight_data,
    decode_packet,
    parse_state_line,
)


def flight_payload(
    height=12,
    sensors=0b10000011,
    battery=87,
    status=0b00100001,
    front=0b101,
    temperature=1,
) -> bytes:
    """Build a 24-byte flight-data payload."""
    return struct.pack(
        "<5hBBBhhBBBBBBB",
        height, -4, 5, 6, 50,
        sensors, 0, battery, 400, 900,
        status, 6, 0, 0, 0,
        front, temperature,
    )


class TestFlightData:
    """Test the flight-data payload decoder."""

    def test_numeric_fields(self):
        """Test little-endian numeric fields."""
        data = decode_flight_data(flight_payload())

        assert data.height == 12
        assert data.north_speed == -4
        assert data.east_speed == 5
        assert data.ground_speed == 6
        assert data.fly_time == 50
        assert data.battery_percentage == 87
        assert data.battery_left == 400
        assert data.fly_time_left == 900
        assert data.fly_mode == 6

    def test_remaining_fields_are_signed(self):
        """Test battery and fly time left decode as signed 16-bit."""
        payload = bytearray(flight_payload())
        struct.pack_into("<hh", payload, 13, -1, -300)
        data = decode_flight_data(bytes(payload))

        assert data.battery_left == -1
        assert data.fly_time_left == -300

    def test_sensor_bits(self):
        """Test the sensor status byte."""
        data = decode_flight_data(flight_payload(sensors=0b10000011))

        assert data.imu_state
        assert data.pressure_state
        assert not data.down_visual_state
        assert not data.power_state
        assert data.wind_state

    def test_status_bits(self):
        """Test the flight status byte and convenience flags."""
        data = decode_flight_data(flight_payload(status=0b00100001))

        assert data.em_sky
        assert data.flying
        assert not data.on_ground
        assert data.battery_low
        assert not data.battery_lower
        assert not data.factory_mode

    def test_front_and_temperature_bits(self):
        """Test the last two bit fields."""
        data = decode_flight_data(flight_payload(front=0b101, temperature=1))

        assert data.front_in
        assert not data.front_out
        assert data.front_lsc
        assert data.temperature_height

    def test_error_present(self):
        """Test error flag follows unhealthy sensors."""
        healthy = decode_flight_data(flight_payload(sensors=0b00000011))
        unhealthy = decode_flight_data(flight_payload(sensors=0b00000001))

        assert not healthy.error_present
        assert unhealthy.error_present

    def test_is_immutable(self):
        """Test snapshots cannot be modified."""
        data = decode_flight_data(flight_payload())
        with pytest.raises(AttributeError):
            data.height = 99

    def test_short_payload(self):
        """Test a short payload is rejected."""
        with pytest.raises(ValueError, match="too short"):
            decode_flight_data(bytes(10))


class TestDecodePacket:
    """Test table-driven packet dispatch."""

    def test_flight_message(self):
        """Test flight data is decoded into a DataMessage."""
        packet = Packet(PacketType.X48, CommandId.FLIGHT_MSG, 0, flight_payload())
        message = decode_packet(packet)

        assert isinstance(message, DataMessage)
        assert isinstance(message.data, FlightData)
        assert message.command_id == CommandId.FLIGHT_MSG

    def test_wifi_and_light(self):
        """Test single-byte payloads."""
        wifi = decode_packet(Packet(PacketType.X48, CommandId.WIFI_MSG, 0, b"\x5a\x02"))
        light = decode_packet(Packet(PacketType.X48, CommandId.LIGHT_MSG, 0, b"\x01"))

        assert wifi.data == WifiInfo(strength=90, disturb=2)
        assert light.data == LightInfo(good=1)

    def test_log_header(self):
        """Test the log id is read from the first two bytes."""
        payload = struct.pack("<H", 0x1234) + b"hello"
        message = decode_packet(Packet(PacketType.X50, CommandId.LOG_HEADER_MSG, 3, payload))

        assert message.data == LogMessage(log_id=0x1234, message=b"hello")

    def test_version(self):
        """Test version text is trimmed of padding."""
        payload = b"\x00" + b"01.04.92.01" + b"\x00\x00\x00"
        message = decode_packet(Packet(PacketType.X48, CommandId.VERSION_MSG, 1, payload))

        assert message.data == VersionInfo(version="01.04.92.01")

    def test_alt_limit(self):
        """Test altitude limit skips the status byte."""
        message = decode_packet(Packet(PacketType.X48, CommandId.ALT_LIMIT_MSG, 1, b"\x00\x1e\x00"))

        assert message.data == AltitudeLimit(height=30)

    def test_time_request_has_no_payload_data(self):
        """Test known raw packets decode with data None."""
        message = decode_packet(Packet(PacketType.X50, CommandId.TIME_CMD, 0, b""))

        assert isinstance(message, DataMessage)
        assert message.data is None

    def test_acknowledgement(self):
        """Test an echoed take-off is an OK response."""
        message = decode_packet(Packet(PacketType.X68, CommandId.TAKEOFF_CMD, 9, b"\x00"))

        assert message == ResponseMessage(
            status=ResponseStatus.OK, command=CommandKind.TAKE_OFF, sequence=9
        )

    def test_acknowledgement_with_error_code(self):
        """Test a non-zero status byte is an error response."""
        message = decode_packet(Packet(PacketType.X68, CommandId.LAND_CMD, 4, b"\x01"))

        assert message.status == ResponseStatus.ERROR
        assert message.command == CommandKind.LAND

    def test_unknown_passthrough(self):
        """Test unrecognized command ids keep their raw payload."""
        message = decode_packet(Packet(0x99, 0x7777, 5, b"abc"))

        assert message == UnknownMessage(packet_type=0x99, command_id=0x7777, sequence=5, payload=b"abc")

    def test_short_known_payload_is_unknown(self):
        """Test a truncated known payload falls back instead of raising."""
        message = decode_packet(Packet(PacketType.X48, CommandId.FLIGHT_MSG, 0, b"\x01\x02"))

        assert isinstance(message, UnknownMessage)
        assert message.payload == b"\x01\x02"


class TestStateLine:
    """Test command-mode state line parsing."""

    LINE = (
        "pitch:1;roll:-2;yaw:45;vgx:3;vgy:0;vgz:-1;templ:60;temph:63;"
        "tof:10;h:120;bat:87;baro:-47.32;time:12;agx:-5.00;agy:1.00;agz:-998.00;\r\n"
    )

    def test_full_line(self):
        """Test all known fields are parsed."""
        state = parse_state_line(self.LINE)

        assert state.bat == 87
        assert state.h == 120
        assert state.yaw == 45
        assert state.roll == -2
        assert state.vgx == 3
        assert state.baro == pytest.approx(-47.32)
        assert state.agz == pytest.approx(-998.0)

    def test_unknown_keys_ignored(self):
        """Test extra keys from newer firmware are ignored."""
        state = parse_state_line("mid:-1;x:0;bat:87;h:120;yaw:45;mpry:0,0,0;")

        assert state.bat == 87
        assert state.h == 120
        assert state.yaw == 45

    def test_missing_keys_keep_previous(self):
        """Test missing keys keep the previous value."""
        previous = parse_state_line("bat:90;h:50;yaw:10;")
        state = parse_state_line("bat:89;", previous)

        assert state.bat == 89
        assert state.h == 50
        assert state.yaw == 10

    def test_missing_keys_default(self):
        """Test missing keys default to zero without a previous state."""
        state = parse_state_line("bat:89;")

        assert state.h == 0
        assert state.baro == 0.0

    def test_equals_separator_and_garbage(self):
        """Test key=value pairs, empty segments and bad values."""
        state = parse_state_line("bat=55;;h:abc;yaw=-90;;")

        assert state.bat == 55
        assert state.h == 0
        assert state.yaw == -90

    def test_default_receive_time(self):
        """Test states get a monotonic receive time and keep the motor time key."""
        first = CommandModeState()
        state = parse_state_line("time:12;bat:50;")

        assert isinstance(first.received_at, float)
        assert state.received_at >= first.received_at
        assert state.time == 12.0

    def test_received_at(self):
        """Test the receive time is recorded."""
        state = parse_state_line("bat:1;", received_at=12.5)

        assert state.received_at == 12.5


class TestDecodeDatagram:
    """Test routing of raw datagrams."""

    def test_binary_frame(self):
        """Test framed bytes go through the codec."""
        data = PacketCodec.encode(Packet(PacketType.X48, CommandId.WIFI_MSG, 0, b"\x50\x00"))
        message = decode_datagram(data)

        assert isinstance(message, DataMessage)
        assert message.data == WifiInfo(strength=80, disturb=0)

    def test_conn_ack(self):
        """Test the connection acknowledgement."""
        message = decode_datagram(b"conn_ack:\x96\x17")

        assert message.status == ResponseStatus.CONNECTED
        assert message.command is None

    def test_unknown_command_reply(self):
        """Test the unknown-command reply carries the id."""
        message = decode_datagram(b"unknown command:\x54\x00")

        assert message.status == ResponseStatus.UNKNOWN_COMMAND
        assert message.detail == "0x0054"

    def test_text_ok_and_error(self):
        """Test command-mode text replies."""
        assert decode_datagram(b"ok") == ResponseMessage(status=ResponseStatus.OK)
        error = decode_datagram(b"error Not joystick")
        assert error.status == ResponseStatus.ERROR
        assert error.detail == "error Not joystick"

    def test_state_line(self):
        """Test a state line becomes a StateMessage."""
        message = decode_datagram(b"bat:87;h:120;yaw:45;foo:1;")

        assert isinstance(message, StateMessage)
        assert message.state.bat == 87
        assert message.state.h == 120

    def test_state_line_uses_previous(self):
        """Test lenient parsing against the previous state."""
        previous = CommandModeState(h=30)
        message = decode_datagram(b"bat:87;", previous_state=previous)

        assert message.state.h == 30

    @pytest.mark.parametrize("data", [b"hello", b"", b"\xff\xfe\xfd"])
    def test_garbage_is_malformed(self, data):
        """Test unrecognized datagrams raise MalformedPacket."""
        with pytest.raises(MalformedPacket):
            decode_datagram(data)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
