"""
Command session for the Tello drone.

The session is driven purely by events: callers feed it inbound messages and
the current monotonic time, and it queues outbound datagrams which the driver
drains and sends. It owns the connection phase, the sequence counter, the
single pending command slot, the odometry accumulator and the telemetry cache.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import List, Optional, Union

from ..protocol import commands
from ..protocol.messages import (
    CommandId,
    CommandKind,
    CommandModeState,
    DataMessage,
    LogMessage,
    Message,
    Packet,
    ResponseMessage,
    ResponseStatus,
    StateMessage,
    UnknownMessage,
)
from ..protocol.packet_codec import PacketCodec
from .config import Config, default_config
from .drone_meta import DroneMeta
from .errors import (
    CommandPending,
    CommandRejected,
    CommandTimeout,
    NotConnected,
    SessionDisconnected,
    SessionError,
)
from .odometry import Odometry, OdometryIntegrator
from .state_machine import PhaseMachine, SessionPhase

logger = logging.getLogger(__name__)

Outbound = Union[Packet, bytes]


class CommandHandle:
    """
    Handle for an issued command.

    Resolves exactly once, either to the acknowledging ResponseMessage or to a
    SessionError. Wraps a concurrent.futures.Future so it can be awaited from
    asyncio through asyncio.wrap_future.
    """

    def __init__(self, kind: CommandKind, sequence: int):
        self.kind = kind
        self.sequence = sequence
        self.future: Future = Future()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> ResponseMessage:
        """
        Block until the command resolves.

        Args:
            timeout: Seconds to wait, None waits forever.

        Returns:
            The acknowledging response.

        Raises:
            SessionError: If the command failed.
        """
        return self.future.result(timeout)

    def exception(self) -> Optional[BaseException]:
        """Failure of a resolved handle, or None."""
        return self.future.exception(timeout=0) if self.future.done() else None

    def _resolve(self, response: ResponseMessage) -> None:
        if not self.future.done():
            self.future.set_result(response)

    def _fail(self, error: SessionError) -> None:
        if not self.future.done():
            self.future.set_exception(error)


@dataclass
class PendingCommand:
    """The one command waiting for an acknowledgement."""

    sequence: int
    kind: CommandKind
    datagram: bytes
    sent_at: float
    handle: CommandHandle
    retries: int = 0


@dataclass
class SessionStats:
    """Session counters."""

    commands_issued: int = 0
    acks: int = 0
    unexpected_acks: int = 0
    retransmissions: int = 0
    timeouts: int = 0
    rejections: int = 0
    unknown_messages: int = 0
    decode_errors: int = 0


class CommandSession:
    """
    Connection phase, command acknowledgement and retry logic.

    Every method that depends on time takes ``now`` in monotonic seconds, so
    the same session drives the blocking and the asyncio drivers.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize session in DISCONNECTED.

        Args:
            config: Client configuration.
        """
        self.config = config or default_config
        self._machine = PhaseMachine()
        self._outbound: List[bytes] = []
        self._sequence = 0
        self._pending: Optional[PendingCommand] = None
        self._flight_data_count = 0
        self._last_state: Optional[CommandModeState] = None

        self.video_enabled = False
        self.video_port: Optional[int] = None
        self.stats = SessionStats()
        self.meta = DroneMeta()
        self.odometry = OdometryIntegrator()

    # Phase

    @property
    def phase(self) -> SessionPhase:
        return self._machine.phase

    @property
    def phases(self) -> PhaseMachine:
        """Phase machine, for registering transition callbacks."""
        return self._machine

    @property
    def pending(self) -> Optional[PendingCommand]:
        return self._pending

    @property
    def last_state(self) -> Optional[CommandModeState]:
        """Most recent command-mode state line."""
        return self._last_state

    def is_command_mode(self) -> bool:
        return self._machine.is_command_mode()

    def odometry_snapshot(self) -> Odometry:
        return self.odometry.snapshot()

    # Outbound

    def next_sequence(self) -> int:
        """Allocate the next sequence number, wrapping at 16 bits."""
        self._sequence = (self._sequence + 1) & 0xFFFF
        return self._sequence

    def _encode(self, item: Outbound, sequence: Optional[int] = None) -> bytes:
        if isinstance(item, Packet):
            if commands.uses_sequence(item):
                item = replace(item, sequence=self.next_sequence() if sequence is None else sequence)
            return PacketCodec.encode(item)
        return bytes(item)

    def send(self, item: Outbound) -> None:
        """
        Queue a datagram that expects no acknowledgement.

        Args:
            item: Packet (stamped with a sequence number if it uses one) or
                raw bytes.

        Raises:
            NotConnected: If the session is disconnected.
        """
        if self._machine.is_disconnected():
            raise NotConnected("connect() first")
        self._outbound.append(self._encode(item))

    def drain_outbound(self) -> List[bytes]:
        """Take all queued datagrams in send order."""
        out, self._outbound = self._outbound, []
        return out

    # Connect

    def connect(self, video_port: int, now: float) -> bool:
        """
        Announce the video port and enable video.

        Args:
            video_port: Local UDP port for the video stream.
            now: Monotonic time.

        Returns:
            True if the session moved to CONNECTING_VIDEO.
        """
        if not self._machine.transition_to(SessionPhase.CONNECTING_VIDEO):
            return False

        self.video_port = video_port
        self._outbound.append(commands.conn_request(video_port))
        self._outbound.append(self._encode(commands.start_video()))
        self.video_enabled = True
        logger.info(f"Connecting, video on port {video_port}")
        return True

    def enable_command_mode(self, now: float) -> CommandHandle:
        """
        Send the command-mode handshake.

        Args:
            now: Monotonic time.

        Returns:
            Handle resolving when the drone acknowledges.

        Raises:
            NotConnected: If the drone has not answered yet.
            CommandPending: If another command is outstanding.
        """
        if self.phase == SessionPhase.COMMAND_MODE_READY:
            handle = CommandHandle(CommandKind.COMMAND_MODE, 0)
            handle._resolve(ResponseMessage(status=ResponseStatus.OK, command=CommandKind.COMMAND_MODE))
            return handle

        handle = self.issue(CommandKind.COMMAND_MODE, commands.command_mode(), now)
        if self.phase == SessionPhase.CONNECTED:
            self._machine.transition_to(SessionPhase.COMMAND_MODE_HANDSHAKE)
        return handle

    # Commands

    def issue(self, kind: CommandKind, datagram: Outbound, now: float) -> CommandHandle:
        """
        Issue a command that occupies the pending slot until acknowledged.

        Args:
            kind: Command kind used for acknowledgement matching.
            datagram: Packet or raw text command.
            now: Monotonic time.

        Returns:
            Handle for the command.

        Raises:
            NotConnected: If the drone has not answered yet.
            CommandPending: If another command is outstanding.
        """
        if not self._machine.is_connected():
            raise NotConnected(f"Cannot send {kind.name} while {self.phase.name}")
        if self._pending is not None:
            raise CommandPending(f"{self._pending.kind.name} still waiting for an ack")

        # Record the sequence that goes on the wire, acks echo it
        if isinstance(datagram, Packet) and not commands.uses_sequence(datagram):
            sequence = datagram.sequence
        else:
            sequence = self.next_sequence()
        data = self._encode(datagram, sequence)
        handle = CommandHandle(kind, sequence)
        self._pending = PendingCommand(
            sequence=sequence, kind=kind, datagram=data, sent_at=now, handle=handle
        )
        self._outbound.append(data)
        self.stats.commands_issued += 1
        logger.debug(f"Issued {kind.name} seq={sequence}")
        return handle

    def poll_timers(self, now: float) -> None:
        """
        Resend or expire the pending command.

        Args:
            now: Monotonic time.
        """
        pending = self._pending
        if pending is None or now - pending.sent_at < self.config.ack_timeout_s:
            return

        if pending.retries < self.config.max_retries:
            pending.retries += 1
            pending.sent_at = now
            self._outbound.append(pending.datagram)
            self.stats.retransmissions += 1
            logger.warning(
                f"No ack for {pending.kind.name}, retry {pending.retries}/{self.config.max_retries}"
            )
            return

        self._pending = None
        self.stats.timeouts += 1
        logger.warning(f"{pending.kind.name} timed out after {pending.retries + 1} sends")
        pending.handle._fail(CommandTimeout(pending.kind, pending.retries + 1))

    # Inbound

    def handle_message(self, message: Message, now: float) -> Message:
        """
        Update the session with an inbound message.

        Args:
            message: Decoded message from the command or state socket.
            now: Monotonic time.

        Returns:
            The same message, for the caller to pass on.
        """
        if self._machine.is_disconnected():
            logger.debug(f"Ignoring {type(message).__name__} while disconnected")
            return message

        if self.phase == SessionPhase.CONNECTING_VIDEO:
            self._machine.transition_to(SessionPhase.CONNECTED)

        if isinstance(message, ResponseMessage):
            self._handle_response(message)
        elif isinstance(message, DataMessage):
            self._handle_data(message)
        elif isinstance(message, StateMessage):
            self._last_state = message.state
            self.odometry.update(message.state)
        elif isinstance(message, UnknownMessage):
            self.stats.unknown_messages += 1
            logger.debug(
                f"Unknown packet type=0x{message.packet_type:02x} "
                f"cmd=0x{message.command_id:04x} ({len(message.payload)} bytes)"
            )
        return message

    def _handle_response(self, response: ResponseMessage) -> None:
        pending = self._pending

        if response.status == ResponseStatus.CONNECTED:
            self._flight_data_count = 0
            if pending is None or pending.kind != CommandKind.COMMAND_MODE:
                logger.debug("Connection acknowledged")
                return

        if pending is None or not self._matches(pending, response):
            self.stats.unexpected_acks += 1
            logger.warning(
                f"Unexpected ack {response.status.name} for "
                f"{response.command.name if response.command else 'no command'}"
            )
            return

        self._pending = None
        if response.status in (ResponseStatus.OK, ResponseStatus.CONNECTED):
            self.stats.acks += 1
            if pending.kind == CommandKind.COMMAND_MODE:
                self._machine.transition_to(SessionPhase.COMMAND_MODE_READY)
            pending.handle._resolve(response)
        else:
            self.stats.rejections += 1
            logger.warning(f"{pending.kind.name} rejected: {response.status.name} {response.detail}")
            pending.handle._fail(CommandRejected(pending.kind, response.detail))

    def _matches(self, pending: PendingCommand, response: ResponseMessage) -> bool:
        if response.command is not None and response.command != pending.kind:
            return False
        if (
            self.config.strict_sequence_match
            and response.sequence is not None
            and response.sequence != pending.sequence
        ):
            return False
        return True

    def _handle_data(self, message: DataMessage) -> None:
        self.meta.update(message.data)

        if isinstance(message.data, LogMessage):
            self.send(commands.log_ack(message.data.log_id))
        elif message.command_id == CommandId.TIME_CMD:
            self.send(commands.date_time())
        elif message.command_id == CommandId.FLIGHT_MSG:
            self._flight_data_count += 1
            if self._flight_data_count == self.config.status_query_after:
                self._send_status_queries()

    def _send_status_queries(self) -> None:
        logger.info("Requesting drone status")
        for packet in (
            commands.get_version(),
            commands.set_video_bitrate(self.config.default_video_bitrate),
            commands.get_alt_limit(),
            commands.get_battery_threshold(),
            commands.get_att_angle(),
            commands.get_region(),
            commands.set_exposure(self.config.default_exposure),
        ):
            self.send(packet)

    # Teardown

    def disconnect(self, reason: Optional[str] = None) -> None:
        """
        Drop to DISCONNECTED and fail the pending command.

        Args:
            reason: Text attached to the SessionDisconnected error.
        """
        pending, self._pending = self._pending, None
        self._outbound.clear()
        self.video_enabled = False
        if not self._machine.is_disconnected():
            self._machine.transition_to(SessionPhase.DISCONNECTED)
            logger.info(f"Disconnected: {reason or 'requested'}")
        if pending is not None:
            pending.handle._fail(SessionDisconnected(reason))

    def reset(self) -> None:
        """Clear sequence numbers, counters, odometry and status-query progress."""
        self._sequence = 0
        self._flight_data_count = 0
        self._last_state = None
        self.stats = SessionStats()
        self.odometry.reset()
        logger.info("Session reset")
