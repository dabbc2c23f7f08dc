"""Fixed-cadence transmit scheduler, the only producer of RC datagrams."""

import logging
from typing import List, Optional

from ..protocol import commands
from ..protocol.packet_codec import PacketCodec
from .config import Config, default_config
from .rc_state import RcState
from .session import CommandSession
from .state_machine import SessionPhase

logger = logging.getLogger(__name__)


class TransmitScheduler:
    """
    Builds the outbound datagrams for each tick.

    Every tick sends the RC vector regardless of whether it changed, since
    the drone lands when RC packets stop arriving. Retransmissions and any
    queued session output go out in the same tick.
    """

    def __init__(
        self,
        session: CommandSession,
        rc_state: RcState,
        config: Optional[Config] = None,
    ):
        """
        Initialize scheduler.

        Args:
            session: Session whose output is merged into each tick.
            rc_state: Shared RC vector.
            config: Client configuration.
        """
        self.session = session
        self.rc_state = rc_state
        self.config = config or default_config
        self._next_tick: Optional[float] = None
        self._last_key_frame: Optional[float] = None
        self.ticks = 0

    def is_due(self, now: float) -> bool:
        """Check whether a tick should run at ``now``."""
        return self._next_tick is None or now >= self._next_tick

    def seconds_until_due(self, now: float) -> float:
        if self._next_tick is None:
            return 0.0
        return max(0.0, self._next_tick - now)

    def tick(self, now: float) -> List[bytes]:
        """
        Run one transmit tick.

        Args:
            now: Monotonic time.

        Returns:
            Datagrams to send, in order.
        """
        interval = self.config.tick_interval_s
        if self._next_tick is None or now - self._next_tick > interval:
            # First tick, or fell behind: restart the cadence from now
            self._next_tick = now + interval
        else:
            self._next_tick += interval
        self.ticks += 1

        phase = self.session.phase
        if phase == SessionPhase.DISCONNECTED:
            return self.session.drain_outbound()

        datagrams = [self._rc_datagram(phase)]

        if self.session.video_enabled and phase in (
            SessionPhase.CONNECTING_VIDEO,
            SessionPhase.CONNECTED,
        ):
            if self._last_key_frame is None:
                self._last_key_frame = now
            elif now - self._last_key_frame >= self.config.key_frame_interval_s:
                self._last_key_frame = now
                self.session.send(commands.start_video())

        self.session.poll_timers(now)
        datagrams.extend(self.session.drain_outbound())
        return datagrams

    def _rc_datagram(self, phase: SessionPhase) -> bytes:
        if phase == SessionPhase.COMMAND_MODE_READY:
            return commands.rc_text(*self.rc_state.axes())
        left_right, forward_back, up_down, yaw, fast = self.rc_state.take_stick_parameters()
        return PacketCodec.encode(commands.stick(left_right, forward_back, up_down, yaw, fast))

    def reset(self) -> None:
        self._next_tick = None
        self._last_key_frame = None
