"""Tests for the blocking drone driver with fake sockets."""

import pytest
from collections import deque

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tello_drone.client.config import Config
from tello_drone.client.drone import Drone
from tello_drone.client.errors import (
    CommandTimeout,
    NotConnected,
    SessionDisconnected,
    TransportError,
)
from tello_drone.client.state_machine import SessionPhase
from tello_drone.protocol.messages import (
    CommandId,
    Packet,
    PacketType,
    ResponseMessage,
    ResponseStatus,
)
from tello_drone.protocol.packet_codec import PacketCodec


class FakeSocket:
    """Non-blocking UDP socket stand-in."""

    def __init__(self):
        self.inbox = deque()
        self.sent = []
        self.closed = False
        self.error = None

    def recv(self, size):
        if self.error is not None:
            raise self.error
        if not self.inbox:
            raise BlockingIOError()
        return self.inbox.popleft()

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True


class SteppingClock:
    """Monotonic clock that advances on every read."""

    def __init__(self, step=0.01):
        self.now = 0.0
        self.step = step

    def __call__(self):
        now = self.now
        self.now += self.step
        return now


def sent_command_ids(sock):
    return [PacketCodec.decode(d).command_id for d in sock.sent if PacketCodec.is_framed(d)]


def fragment(frame_id, index, data, last=False):
    return bytes([frame_id, index | (0x80 if last else 0)]) + data


@pytest.fixture
def sockets():
    return FakeSocket(), FakeSocket(), FakeSocket()


@pytest.fixture
def drone(sockets):
    """Create a drone wired to fake sockets, connect started."""
    command, state, video = sockets
    config = Config(ack_timeout_s=0.2, max_retries=1)
    drone = Drone(
        config,
        command_socket=command,
        state_socket=state,
        video_socket=video,
        clock=SteppingClock(),
    )
    drone.connect()
    return drone


@pytest.fixture
def connected(drone, sockets):
    """Drone whose connect was answered."""
    sockets[0].inbox.append(b"conn_ack:\x67\x2b")
    drone.poll()
    return drone


def poll_until(drone, predicate, limit=200):
    for _ in range(limit):
        drone.poll()
        if predicate():
            return
    raise AssertionError("condition not reached")


class TestConnect:
    """Test the connect flow through the driver."""

    def test_first_tick_sends_connect(self, drone, sockets):
        """Test the first poll sends RC, the connection request and video start."""
        assert drone.phase == SessionPhase.CONNECTING_VIDEO

        drone.poll()
        sent = sockets[0].sent

        assert PacketCodec.decode(sent[0]).command_id == CommandId.STICK_CMD
        assert sent[1] == b"conn_req:\x67\x2b"
        assert PacketCodec.decode(sent[2]).command_id == CommandId.VIDEO_START_CMD

    def test_conn_ack(self, drone, sockets):
        """Test the acknowledgement is returned and completes the connect."""
        sockets[0].inbox.append(b"conn_ack:\x67\x2b")
        message = drone.poll()

        assert isinstance(message, ResponseMessage)
        assert message.status == ResponseStatus.CONNECTED
        assert drone.is_connected
        assert drone.phase == SessionPhase.CONNECTED

    def test_connect_twice(self, connected):
        """Test connect does nothing once connected."""
        assert not connected.connect()


class TestCommands:
    """Test commands sent and acknowledged through the driver."""

    def test_take_off_acknowledged(self, connected, sockets):
        """Test a binary take-off round trip."""
        handle = connected.take_off()
        poll_until(connected, lambda: CommandId.TAKEOFF_CMD in sent_command_ids(sockets[0]))

        ack = Packet(PacketType.X68, CommandId.TAKEOFF_CMD, handle.sequence, b"\x00")
        sockets[0].inbox.append(PacketCodec.encode(ack))
        response = connected.run_until_complete(handle, timeout=1.0)

        assert response.status == ResponseStatus.OK
        assert connected.session.pending is None

    def test_command_times_out(self, connected, sockets):
        """Test an unanswered command is sent twice then times out."""
        handle = connected.land()

        with pytest.raises(CommandTimeout):
            connected.run_until_complete(handle)
        assert sent_command_ids(sockets[0]).count(CommandId.LAND_CMD) == 2

    def test_run_until_complete_timeout(self, connected):
        """Test the caller's timeout raises TimeoutError."""
        connected.config.ack_timeout_s = 10.0
        handle = connected.land()

        with pytest.raises(TimeoutError):
            connected.run_until_complete(handle, timeout=0.1)
        assert not handle.done()

    def test_text_commands_need_command_mode(self, connected):
        """Test movement commands are refused on the binary protocol."""
        with pytest.raises(NotConnected, match="command mode"):
            connected.forward(50)

    def test_command_mode_round_trip(self, connected, sockets):
        """Test handshake then a text command."""
        handle = connected.enable_command_mode()
        poll_until(connected, lambda: b"command" in sockets[0].sent)
        sockets[0].inbox.append(b"ok")
        connected.run_until_complete(handle, timeout=1.0)
        assert connected.phase == SessionPhase.COMMAND_MODE_READY

        move = connected.forward(50)
        poll_until(connected, lambda: b"forward 50" in sockets[0].sent)
        sockets[0].inbox.append(b"ok")

        assert connected.run_until_complete(move, timeout=1.0).status == ResponseStatus.OK

    def test_unacked_settings(self, connected, sockets):
        """Test settings are queued and sent with the next tick."""
        connected.set_exposure(1)
        connected.get_version()
        poll_until(connected, lambda: CommandId.VERSION_MSG in sent_command_ids(sockets[0]))

        assert CommandId.EXPOSURE_CMD in sent_command_ids(sockets[0])


class TestInbound:
    """Test state, video and error handling on receive."""

    def test_state_lines(self, connected, sockets):
        """Test state lines reach the receiver and odometry."""
        receiver = connected.take_state_receiver()
        sockets[1].inbox.append(b"bat:87;h:120;yaw:45;\r\n")
        connected.poll()

        state = receiver.get(timeout=1.0)
        assert state.bat == 87
        assert connected.odometry().heading == 45.0

    def test_video_frames(self, connected, sockets):
        """Test reassembled frames reach the video receiver."""
        receiver = connected.take_video_receiver()
        sockets[2].inbox.extend([fragment(1, 0, b"ab"), fragment(1, 1, b"cd", last=True)])
        connected.poll()
        connected.poll()

        assert receiver.get(timeout=1.0) == b"abcd"
        assert connected.get_stats()["frames_completed"] == 1

    def test_decode_errors_counted(self, connected, sockets):
        """Test garbage is dropped and counted."""
        sockets[0].inbox.append(b"\x00garbage")

        assert connected.poll() is None
        assert connected.get_stats()["decode_errors"] == 1
        assert connected.phase == SessionPhase.CONNECTED

    def test_flight_data_cached(self, connected, sockets):
        """Test telemetry lands in the metadata cache."""
        sockets[0].inbox.append(
            PacketCodec.encode(Packet(PacketType.X48, CommandId.WIFI_MSG, 0, b"\x5a\x00"))
        )
        connected.poll()

        assert connected.meta.wifi_strength == 90

    def test_receive_failure(self, connected, sockets):
        """Test a socket error raises TransportError and disconnects."""
        handle = connected.land()
        sockets[0].error = OSError("network is unreachable")

        with pytest.raises(TransportError):
            connected.poll()
        assert connected.phase == SessionPhase.DISCONNECTED
        assert isinstance(handle.exception(), SessionDisconnected)


class TestLifecycle:
    """Test close and the context manager."""

    def test_close(self, connected, sockets):
        """Test close disconnects and closes every socket."""
        connected.close()

        assert connected.phase == SessionPhase.DISCONNECTED
        assert all(s.closed for s in sockets)

    def test_context_manager(self, sockets):
        """Test leaving the block closes the drone."""
        command, state, video = sockets
        with Drone(command_socket=command, state_socket=state, video_socket=video) as drone:
            drone.connect()

        assert command.closed
        assert drone.phase == SessionPhase.DISCONNECTED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
