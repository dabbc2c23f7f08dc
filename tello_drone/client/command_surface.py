"""
Drone commands shared by the blocking and asyncio drivers.

Acknowledged commands go through ``_wrap``: the blocking driver returns the
CommandHandle itself, the asyncio driver returns an awaitable that resolves
to the acknowledgement. Everything else is queued on the session and sent
with the next transmit tick.
"""

from typing import Optional

from ..protocol import commands
from ..protocol.messages import CommandKind, Flip, VideoMode
from .errors import NotConnected
from .session import CommandHandle, CommandSession, Outbound


class CommandSurface:
    """Command methods on top of a CommandSession."""

    session: CommandSession

    def _now(self) -> float:
        raise NotImplementedError

    def _wrap(self, handle: CommandHandle):
        raise NotImplementedError

    def _issue(self, kind: CommandKind, datagram: Outbound):
        return self._wrap(self.session.issue(kind, datagram, self._now()))

    def _require_command_mode(self, kind: CommandKind) -> None:
        if not self.session.is_command_mode():
            raise NotConnected(f"{kind.name} needs command mode")

    def _text(self, kind: CommandKind, *args: int):
        self._require_command_mode(kind)
        return self._issue(kind, commands.text_command(kind, *args))

    def enable_command_mode(self):
        """Switch the drone to the acknowledged text protocol."""
        return self._wrap(self.session.enable_command_mode(self._now()))

    # Flight

    def take_off(self):
        if self.session.is_command_mode():
            return self._issue(CommandKind.TAKE_OFF, commands.text_command(CommandKind.TAKE_OFF))
        return self._issue(CommandKind.TAKE_OFF, commands.take_off())

    def land(self):
        if self.session.is_command_mode():
            return self._issue(CommandKind.LAND, commands.text_command(CommandKind.LAND))
        return self._issue(CommandKind.LAND, commands.land())

    def palm_land(self):
        return self._issue(CommandKind.PALM_LAND, commands.palm_land())

    def throw_and_go(self):
        return self._issue(CommandKind.THROW_AND_GO, commands.throw_and_go())

    def flip(self, direction: Flip):
        """
        Flip in one of eight directions.

        Command mode only knows the four straight directions.
        """
        if self.session.is_command_mode():
            return self._issue(CommandKind.FLIP, commands.text_command(CommandKind.FLIP, direction))
        return self._issue(CommandKind.FLIP, commands.flip(direction))

    def bounce(self, enable: bool = True):
        return self._issue(CommandKind.BOUNCE, commands.bounce(enable))

    def emergency(self):
        """Stop all motors immediately."""
        return self._text(CommandKind.EMERGENCY)

    # Command-mode movement, distances in cm

    def up(self, distance: int):
        return self._text(CommandKind.UP, distance)

    def down(self, distance: int):
        return self._text(CommandKind.DOWN, distance)

    def left(self, distance: int):
        return self._text(CommandKind.LEFT, distance)

    def right(self, distance: int):
        return self._text(CommandKind.RIGHT, distance)

    def forward(self, distance: int):
        return self._text(CommandKind.FORWARD, distance)

    def back(self, distance: int):
        return self._text(CommandKind.BACK, distance)

    def cw(self, degrees: int):
        return self._text(CommandKind.CW, degrees)

    def ccw(self, degrees: int):
        return self._text(CommandKind.CCW, degrees)

    def go(self, x: int, y: int, z: int, speed: int):
        return self._text(CommandKind.GO, x, y, z, speed)

    def curve(self, x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, speed: int):
        return self._text(CommandKind.CURVE, x1, y1, z1, x2, y2, z2, speed)

    def speed(self, speed: int):
        return self._text(CommandKind.SPEED, speed)

    def video_on(self):
        return self._text(CommandKind.VIDEO_ON)

    def video_off(self):
        return self._text(CommandKind.VIDEO_OFF)

    # Unacknowledged settings and queries

    def start_video(self) -> None:
        """Start the stream and request a key frame."""
        self.session.video_enabled = True
        self.session.send(commands.start_video())

    def poll_key_frame(self) -> None:
        self.start_video()

    def set_video_mode(self, mode: VideoMode) -> None:
        self.session.send(commands.set_video_mode(mode))

    def set_exposure(self, level: int) -> None:
        self.session.send(commands.set_exposure(level))

    def set_video_bitrate(self, rate: int) -> None:
        self.session.send(commands.set_video_bitrate(rate))

    def take_picture(self) -> None:
        self.session.send(commands.take_picture())

    def get_version(self) -> None:
        self.session.send(commands.get_version())

    def get_alt_limit(self) -> None:
        self.session.send(commands.get_alt_limit())

    def set_alt_limit(self, limit: int) -> None:
        self.session.send(commands.set_alt_limit(limit))

    def get_att_angle(self) -> None:
        self.session.send(commands.get_att_angle())

    def set_att_angle(self) -> None:
        self.session.send(commands.set_att_angle())

    def get_battery_threshold(self) -> None:
        self.session.send(commands.get_battery_threshold())

    def set_battery_threshold(self, threshold: int) -> None:
        self.session.send(commands.set_battery_threshold(threshold))

    def get_region(self) -> None:
        self.session.send(commands.get_region())

    @property
    def version(self) -> Optional[str]:
        """Firmware version, once the drone reported it."""
        return self.session.meta.version
