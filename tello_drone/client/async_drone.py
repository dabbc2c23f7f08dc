"""
Asyncio driver for the Tello drone.

Each socket is a datagram endpoint whose callbacks feed the session, and a
transmit task ticks at the configured cadence. Command methods return
awaitables that resolve to the acknowledgement or raise SessionError.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from ..protocol.messages import CommandModeState, Message, StateMessage
from ..protocol.packet_codec import DecodeError
from ..protocol.telemetry_decoder import decode_datagram
from .channels import AsyncChannelReceiver, AsyncSingleOwnerChannel
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


class _DatagramEndpoint(asyncio.DatagramProtocol):
    """Forwards datagrams and socket errors to callbacks."""

    def __init__(
        self,
        name: str,
        on_datagram: Callable[[bytes], None],
        on_error: Callable[[str, Exception], None],
    ):
        self.name = name
        self._on_datagram = on_datagram
        self._on_error = on_error
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._on_datagram(data)

    def error_received(self, exc: Exception) -> None:
        self._on_error(self.name, exc)


class AsyncDrone(CommandSurface):
    """
    Asyncio Tello client.

    Example:
        drone = AsyncDrone()
        await drone.connect()
        await drone.enable_command_mode()
        await drone.take_off()
        await drone.close()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        rc_state: Optional[RcState] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize driver. Must be created inside a running event loop.

        Args:
            config: Client configuration.
            rc_state: Shared RC vector, a new one by default.
            clock: Monotonic time source.
        """
        self.config = config or default_config
        self.rc_state = rc_state or RcState()
        self.session = CommandSession(self.config)
        self.scheduler = TransmitScheduler(self.session, self.rc_state, self.config)
        self.video = VideoFrameAssembler(packet_size=self.config.video_packet_size)
        self._clock = clock

        self._command: Optional[_DatagramEndpoint] = None
        self._state: Optional[_DatagramEndpoint] = None
        self._video: Optional[_DatagramEndpoint] = None
        self._transmit_task: Optional[asyncio.Task] = None
        self._running = False
        self.last_error: Optional[TransportError] = None

        capacity = self.config.channel_capacity
        self._message_channel: AsyncSingleOwnerChannel[Message] = AsyncSingleOwnerChannel(
            "message", capacity
        )
        self._state_channel: AsyncSingleOwnerChannel[CommandModeState] = AsyncSingleOwnerChannel(
            "state", capacity
        )
        self._video_channel: AsyncSingleOwnerChannel[bytes] = AsyncSingleOwnerChannel(
            "video", capacity
        )

        self._datagrams_sent = 0
        self._datagrams_received = 0

    def _now(self) -> float:
        return self._clock()

    def _wrap(self, handle: CommandHandle):
        return self._await_handle(handle)

    async def _await_handle(self, handle: CommandHandle):
        return await asyncio.wrap_future(handle.future)

    # Properties

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def video_port(self) -> Optional[int]:
        return self.session.video_port

    def odometry(self) -> Odometry:
        """Read-only snapshot of the position estimate."""
        return self.session.odometry_snapshot()

    def take_message_receiver(self) -> AsyncChannelReceiver[Message]:
        """Take the receiver for command-socket messages. Works once."""
        return self._message_channel.take()

    def take_state_receiver(self) -> AsyncChannelReceiver[CommandModeState]:
        """Take the state-line receiver. Works once."""
        return self._state_channel.take()

    def take_video_receiver(self) -> AsyncChannelReceiver[bytes]:
        """Take the video-frame receiver. Works once."""
        return self._video_channel.take()

    # Lifecycle

    async def connect(self, video_port: Optional[int] = None) -> bool:
        """
        Open the endpoints, start the handshake and the transmit task.

        Args:
            video_port: Local video port, defaults to the configured one.
                Port 0 binds an ephemeral port and announces it.

        Returns:
            True if the handshake was started.

        Raises:
            TransportError: If an endpoint cannot be opened.
        """
        loop = asyncio.get_running_loop()
        video_port = self.config.video_port if video_port is None else video_port
        host = self.config.bind_host

        try:
            if self._command is None:
                _, self._command = await loop.create_datagram_endpoint(
                    lambda: _DatagramEndpoint("command", self._on_command, self._on_error),
                    local_addr=(host, self.config.local_command_port),
                    remote_addr=(self.config.drone_host, self.config.command_port),
                )
            if self._state is None:
                _, self._state = await loop.create_datagram_endpoint(
                    lambda: _DatagramEndpoint("state", self._on_state, self._on_error),
                    local_addr=(host, self.config.state_port),
                )
            if self._video is None:
                _, self._video = await loop.create_datagram_endpoint(
                    lambda: _DatagramEndpoint("video", self._on_video, self._on_error),
                    local_addr=(host, video_port),
                )
        except OSError as e:
            logger.error(f"Failed to open endpoints: {e}")
            self.session.disconnect(f"open failed: {e}")
            raise TransportError(f"Failed to open endpoints: {e}") from e

        video_port = self._video.transport.get_extra_info("sockname")[1]
        started = self.session.connect(video_port, self._now())

        self.scheduler.reset()
        self._running = True
        if self._transmit_task is None:
            self._transmit_task = asyncio.create_task(self._transmit_loop())
        return started

    async def wait_connected(self, timeout: float = 5.0) -> None:
        """
        Wait until the drone has answered the connect request.

        Raises:
            asyncio.TimeoutError: If the drone stays silent.
        """
        async def _wait():
            while not self.session.phases.is_connected():
                await asyncio.sleep(self.config.tick_interval_s / 5)

        await asyncio.wait_for(_wait(), timeout)

    async def close(self) -> None:
        """Disconnect, stop the transmit task and close the endpoints."""
        self._running = False
        self.session.disconnect("closed")

        if self._transmit_task:
            self._transmit_task.cancel()
            try:
                await self._transmit_task
            except asyncio.CancelledError:
                pass
            self._transmit_task = None

        for endpoint in (self._command, self._state, self._video):
            if endpoint is not None and endpoint.transport is not None:
                endpoint.transport.close()
        self._command = self._state = self._video = None
        logger.info("AsyncDrone closed")

    async def __aenter__(self) -> "AsyncDrone":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Transmit

    async def _transmit_loop(self) -> None:
        """Send one tick of datagrams at the configured cadence."""
        while self._running:
            now = self._now()
            if self.scheduler.is_due(now):
                for data in self.scheduler.tick(now):
                    self._send(data)
            await asyncio.sleep(self.scheduler.seconds_until_due(self._now()))

    def _send(self, data: bytes) -> None:
        if self._command is None or self._command.transport is None:
            return
        if self._command.transport.is_closing():
            return
        self._command.transport.sendto(data)
        self._datagrams_sent += 1

    # Receive

    def _decode(self, data: bytes) -> Optional[Message]:
        try:
            return decode_datagram(data, self.session.last_state, self._now())
        except DecodeError as e:
            self.session.stats.decode_errors += 1
            logger.debug(f"Dropping datagram: {e}")
            return None

    def _on_command(self, data: bytes) -> None:
        self._datagrams_received += 1
        message = self._decode(data)
        if message is None:
            return
        self.session.handle_message(message, self._now())
        if isinstance(message, StateMessage):
            self._state_channel.put(message.state)
        self._message_channel.put(message)

    def _on_state(self, data: bytes) -> None:
        self._datagrams_received += 1
        message = self._decode(data)
        if isinstance(message, StateMessage):
            self.session.handle_message(message, self._now())
            self._state_channel.put(message.state)

    def _on_video(self, data: bytes) -> None:
        framing = VideoFraming.STREAM if self.session.is_command_mode() else VideoFraming.BINARY
        self.video.set_framing(framing)
        frame = self.video.push(data)
        if frame is not None:
            self._video_channel.put(frame)

    def _on_error(self, name: str, error: Exception) -> None:
        logger.error(f"{name} endpoint error: {error}")
        self.last_error = TransportError(f"{name} endpoint error: {error}")
        self.session.disconnect(f"{name} endpoint error: {error}")

    def get_stats(self) -> Dict:
        """Get driver statistics."""
        stats = self.session.stats
        return {
            "phase": self.session.phase.name,
            "running": self._running,
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
        }
