"""Blocking driver: one poll() call advances everything by one step."""

import logging
import socket
import time
from typing import Callable, Dict, Iterable, Optional

from ..protocol.messages import CommandModeState, Message, StateMessage
from ..protocol.packet_codec import DecodeError
from ..protocol.telemetry_decoder import decode_datagram
from .channels import ChannelReceiver, SingleOwnerChannel
from .command_surface import CommandSurface
from .config import Config, default_config
from .errors import TransportError
from .odometry import Odometry
from .rc_state import RcState
from .session import CommandHandle, CommandSession
from .state_machine import SessionPhase
from .transmit import TransmitScheduler
from .video import VideoFraming, VideoFrameAssembler

logger = logging.getLogger(__name__)


def _udp_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, port))
    sock.setblocking(False)
    return sock


class Drone(CommandSurface):
    """
    Synchronous Tello client.

    Call ``poll()`` in a loop, at least as often as the transmit cadence.
    Each call runs a transmit tick when one is due, then reads at most one
    datagram from each of the video, state and command sockets.

    Example:
        drone = Drone()
        drone.connect()
        handle = drone.take_off()
        drone.run_until_complete(handle)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        rc_state: Optional[RcState] = None,
        command_socket: Optional[socket.socket] = None,
        state_socket: Optional[socket.socket] = None,
        video_socket: Optional[socket.socket] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize driver. Sockets are created on connect() unless given.

        Args:
            config: Client configuration.
            rc_state: Shared RC vector, a new one by default.
            command_socket: Pre-connected command socket.
            state_socket: Bound state-line socket.
            video_socket: Bound video socket.
            clock: Monotonic time source.
        """
        self.config = config or default_config
        self.rc_state = rc_state or RcState()
        self.session = CommandSession(self.config)
        self.scheduler = TransmitScheduler(self.session, self.rc_state, self.config)
        self.video = VideoFrameAssembler(packet_size=self.config.video_packet_size)
        self._clock = clock

        self._command_socket = command_socket
        self._state_socket = state_socket
        self._video_socket = video_socket

        self._state_channel: SingleOwnerChannel[CommandModeState] = SingleOwnerChannel(
            "state", self.config.channel_capacity
        )
        self._video_channel: SingleOwnerChannel[bytes] = SingleOwnerChannel(
            "video", self.config.channel_capacity
        )

        self._datagrams_sent = 0
        self._datagrams_received = 0

    def _now(self) -> float:
        return self._clock()

    def _wrap(self, handle: CommandHandle) -> CommandHandle:
        return handle

    # Properties

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    @property
    def is_connected(self) -> bool:
        return self.session.phases.is_connected()

    def odometry(self) -> Odometry:
        """Read-only snapshot of the position estimate."""
        return self.session.odometry_snapshot()

    @property
    def meta(self):
        return self.session.meta

    def take_state_receiver(self) -> ChannelReceiver[CommandModeState]:
        """Take the state-line receiver. Works once per drone."""
        return self._state_channel.take()

    def take_video_receiver(self) -> ChannelReceiver[bytes]:
        """Take the video-frame receiver. Works once per drone."""
        return self._video_channel.take()

    # Lifecycle

    def connect(self, video_port: Optional[int] = None) -> bool:
        """
        Open the sockets and start the connect handshake.

        Args:
            video_port: Local video port, defaults to the configured one.

        Returns:
            True if the handshake was started.

        Raises:
            TransportError: If a socket cannot be opened.
        """
        video_port = self.config.video_port if video_port is None else video_port
        try:
            if self._command_socket is None:
                self._command_socket = _udp_socket(
                    self.config.bind_host, self.config.local_command_port
                )
                self._command_socket.connect((self.config.drone_host, self.config.command_port))
            if self._state_socket is None:
                self._state_socket = _udp_socket(self.config.bind_host, self.config.state_port)
            if self._video_socket is None:
                self._video_socket = _udp_socket(self.config.bind_host, video_port)
        except OSError as e:
            self._fail_transport("open", e)

        self.scheduler.reset()
        return self.session.connect(video_port, self._now())

    def disconnect(self, reason: Optional[str] = None) -> None:
        """Drop the session; pending commands fail with SessionDisconnected."""
        self.session.disconnect(reason)

    def close(self) -> None:
        """Disconnect and close all sockets."""
        self.session.disconnect("closed")
        for sock in (self._command_socket, self._state_socket, self._video_socket):
            if sock is not None:
                sock.close()
        self._command_socket = self._state_socket = self._video_socket = None
        logger.info("Drone closed")

    def __enter__(self) -> "Drone":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Polling

    def poll(self) -> Optional[Message]:
        """
        Advance the session by one step.

        Returns:
            The message decoded from the command socket, if any.

        Raises:
            TransportError: If a socket fails. The session is disconnected.
        """
        now = self._now()
        if self.scheduler.is_due(now):
            self._send_all(self.scheduler.tick(now))

        self._poll_video()
        self._poll_state(now)
        return self._poll_command(now)

    def run_until_complete(self, handle: CommandHandle, timeout: Optional[float] = None):
        """
        Poll until a command resolves.

        Args:
            handle: Handle returned by a command method.
            timeout: Seconds to wait, None relies on the session's retry
                policy to resolve the handle.

        Returns:
            The acknowledging ResponseMessage.

        Raises:
            SessionError: If the command failed.
            TimeoutError: If ``timeout`` elapsed first.
        """
        deadline = None if timeout is None else self._now() + timeout
        while not handle.done():
            self.poll()
            now = self._now()
            if deadline is not None and now >= deadline:
                raise TimeoutError(f"{handle.kind.name} still pending after {timeout}s")
            if not handle.done():
                time.sleep(min(0.005, self.scheduler.seconds_until_due(now)))
        return handle.result()

    def _poll_video(self) -> None:
        data = self._recv(self._video_socket)
        if data is None:
            return
        framing = VideoFraming.STREAM if self.session.is_command_mode() else VideoFraming.BINARY
        self.video.set_framing(framing)
        frame = self.video.push(data)
        if frame is not None:
            self._video_channel.put(frame)

    def _poll_state(self, now: float) -> None:
        data = self._recv(self._state_socket)
        if data is None:
            return
        message = self._decode(data, now)
        if isinstance(message, StateMessage):
            self.session.handle_message(message, now)
            self._state_channel.put(message.state)

    def _poll_command(self, now: float) -> Optional[Message]:
        data = self._recv(self._command_socket)
        if data is None:
            return None
        message = self._decode(data, now)
        if message is None:
            return None
        self.session.handle_message(message, now)
        if isinstance(message, StateMessage):
            self._state_channel.put(message.state)
        return message

    def _decode(self, data: bytes, now: float) -> Optional[Message]:
        try:
            return decode_datagram(data, self.session.last_state, now)
        except DecodeError as e:
            self.session.stats.decode_errors += 1
            logger.debug(f"Dropping datagram: {e}")
            return None

    # Socket helpers

    def _recv(self, sock: Optional[socket.socket]) -> Optional[bytes]:
        if sock is None:
            return None
        try:
            data = sock.recv(self.config.recv_buffer_size)
        except (BlockingIOError, InterruptedError):
            return None
        except OSError as e:
            self._fail_transport("receive", e)
        self._datagrams_received += 1
        return data

    def _send_all(self, datagrams: Iterable[bytes]) -> None:
        if self._command_socket is None:
            return
        for data in datagrams:
            try:
                self._command_socket.send(data)
                self._datagrams_sent += 1
            except BlockingIOError:
                logger.debug("Send buffer full, datagram dropped")
            except OSError as e:
                self._fail_transport("send", e)

    def _fail_transport(self, operation: str, error: OSError) -> None:
        logger.error(f"Socket {operation} failed: {error}")
        self.session.disconnect(f"{operation} failed: {error}")
        raise TransportError(f"Socket {operation} failed: {error}") from error

    def get_stats(self) -> Dict:
        """Get driver statistics."""
        stats = self.session.stats
        return {
            "phase": self.session.phase.name,
            "datagrams_sent": self._datagrams_sent,
            "datagrams_received": self._datagrams_received,
            "ticks": self.scheduler.ticks,
            "acks": stats.acks,
            "unexpected_acks": stats.unexpected_acks,
            "retransmissions": stats.retransmissions,
            "timeouts": stats.timeouts,
            "decode_errors": stats.decode_errors,
            "unknown_messages": stats.unknown_messages,
            "frames_completed": self.video.frames_completed,
            "frames_dropped": self.video.frames_dropped,
            "state_dropped": self._state_channel.dropped,
            "video_dropped": self._video_channel.dropped,
        }
