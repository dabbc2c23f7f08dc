"""Message definitions for drone <-> client communication."""

from time import monotonic
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Tuple, Union


class PacketType(IntEnum):
    """Packet type byte. Describes the payload and how the drone treats it."""

    X48 = 0x48
    X50 = 0x50
    X60 = 0x60
    X68 = 0x68
    X70 = 0x70


class CommandId(IntEnum):
    """Known command / message ids. Not all of them are implemented."""

    UNDEFINED = 0x0000
    SSID_MSG = 0x0011
    SSID_CMD = 0x0012
    SSID_PASSWORD_MSG = 0x0013
    SSID_PASSWORD_CMD = 0x0014
    WIFI_REGION_MSG = 0x0015
    WIFI_REGION_CMD = 0x0016
    WIFI_MSG = 0x001A
    VIDEO_ENCODER_RATE_CMD = 0x0020
    VIDEO_DYN_ADJ_RATE_CMD = 0x0021
    EIS_CMD = 0x0024
    VIDEO_START_CMD = 0x0025
    VIDEO_RATE_QUERY = 0x0028
    TAKE_PICTURE_CMD = 0x0030
    VIDEO_MODE_CMD = 0x0031
    VIDEO_RECORD_CMD = 0x0032
    EXPOSURE_CMD = 0x0034
    LIGHT_MSG = 0x0035
    JPEG_QUALITY_MSG = 0x0037
    ERROR1_MSG = 0x0043
    ERROR2_MSG = 0x0044
    VERSION_MSG = 0x0045
    TIME_CMD = 0x0046
    ACTIVATION_TIME_MSG = 0x0047
    LOADER_VERSION_MSG = 0x0049
    STICK_CMD = 0x0050
    TAKEOFF_CMD = 0x0054
    LAND_CMD = 0x0055
    FLIGHT_MSG = 0x0056
    ALT_LIMIT_CMD = 0x0058
    FLIP_CMD = 0x005C
    THROW_AND_GO_CMD = 0x005D
    PALM_LAND_CMD = 0x005E
    FILE_SIZE = 0x0062
    FILE_DATA = 0x0063
    FILE_COMPLETE = 0x0064
    SMART_VIDEO_CMD = 0x0080
    SMART_VIDEO_STATUS_MSG = 0x0081
    LOG_HEADER_MSG = 0x1050
    LOG_DATA_MSG = 0x1051
    LOG_CONFIG_MSG = 0x1052
    BOUNCE_CMD = 0x1053
    CALIBRATE_CMD = 0x1054
    LOW_BAT_THRESHOLD_CMD = 0x1055
    ALT_LIMIT_MSG = 0x1056
    LOW_BAT_THRESHOLD_MSG = 0x1057
    ATT_LIMIT_CMD = 0x1058
    ATT_LIMIT_MSG = 0x1059


class CommandKind(Enum):
    """Commands that occupy the session's single pending slot."""

    COMMAND_MODE = "command"
    TAKE_OFF = "takeoff"
    LAND = "land"
    PALM_LAND = "palm_land"
    THROW_AND_GO = "throw_and_go"
    FLIP = "flip"
    BOUNCE = "bounce"
    EMERGENCY = "emergency"
    VIDEO_ON = "streamon"
    VIDEO_OFF = "streamoff"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    FORWARD = "forward"
    BACK = "back"
    CW = "cw"
    CCW = "ccw"
    GO = "go"
    CURVE = "curve"
    SPEED = "speed"


class ResponseStatus(Enum):
    """Kind of acknowledgement received from the drone."""

    CONNECTED = "connected"
    OK = "ok"
    ERROR = "error"
    UNKNOWN_COMMAND = "unknown_command"


class Flip(IntEnum):
    """Flip directions."""

    FORWARD = 0
    LEFT = 1
    BACK = 2
    RIGHT = 3
    FORWARD_LEFT = 4
    BACK_LEFT = 5
    BACK_RIGHT = 6
    FORWARD_RIGHT = 7


class VideoMode(IntEnum):
    """Camera modes. 4:3 has the wider field of view, 16:9 is crisper."""

    M960X720 = 0
    M1280X720 = 1


@dataclass(frozen=True)
class Packet:
    """One 0xCC-framed packet. The checksums live in the codec, not here."""

    packet_type: int  # Kind byte (PacketType or raw int)
    command_id: int  # 16-bit subtype (CommandId or raw int)
    sequence: int = 0  # uint16, 0 = unsequenced
    payload: bytes = b""


@dataclass(frozen=True)
class FlightData:
    """Flight telemetry snapshot, sent unsolicited outside command mode."""

    height: int  # decimeters
    north_speed: int
    east_speed: int
    ground_speed: int
    fly_time: int  # deciseconds
    imu_state: bool
    pressure_state: bool
    down_visual_state: bool
    power_state: bool
    battery_state: bool
    gravity_state: bool
    wind_state: bool
    imu_calibration_state: int
    battery_percentage: int
    battery_left: int
    fly_time_left: int
    em_sky: bool
    em_ground: bool
    em_open: bool
    drone_hover: bool
    outage_recording: bool
    battery_low: bool
    battery_lower: bool
    factory_mode: bool
    fly_mode: int
    throw_fly_timer: int
    camera_state: int
    electrical_machinery_state: int
    front_in: bool
    front_out: bool
    front_lsc: bool
    temperature_height: bool

    @property
    def flying(self) -> bool:
        return self.em_sky

    @property
    def on_ground(self) -> bool:
        return self.em_ground

    @property
    def error_present(self) -> bool:
        """True when a sensor reports an unhealthy state."""
        return not (self.imu_state and self.pressure_state) or self.wind_state

    @property
    def temperature_range(self) -> Tuple[int, int]:
        """Coarse temperature band reported by the firmware flag."""
        return (0, 1) if self.temperature_height else (0, 0)


@dataclass(frozen=True)
class WifiInfo:
    strength: int
    disturb: int


@dataclass(frozen=True)
class LightInfo:
    good: int


@dataclass(frozen=True)
class LogMessage:
    """Log header, must be acknowledged with its id."""

    log_id: int
    message: bytes


@dataclass(frozen=True)
class VersionInfo:
    version: str


@dataclass(frozen=True)
class AltitudeLimit:
    height: int  # meters


PayloadData = Union[FlightData, WifiInfo, LightInfo, LogMessage, VersionInfo, AltitudeLimit]


@dataclass(frozen=True)
class CommandModeState:
    """State line sent by the drone while in command mode."""

    pitch: int = 0  # degrees
    roll: int = 0  # degrees
    yaw: int = 0  # degrees, clockwise positive
    vgx: int = 0  # dm/s forward
    vgy: int = 0  # dm/s right
    vgz: int = 0  # dm/s vertical
    templ: int = 0  # lowest temperature (C)
    temph: int = 0  # highest temperature (C)
    tof: int = 0  # time-of-flight distance (cm)
    h: int = 0  # height (cm)
    bat: int = 0  # battery percent
    baro: float = 0.0  # barometer (m)
    time: float = 0.0  # motor time (s)
    agx: float = 0.0  # acceleration (0.001 g)
    agy: float = 0.0
    agz: float = 0.0
    received_at: float = field(default_factory=monotonic, compare=False)


@dataclass(frozen=True)
class DataMessage:
    """A packet carrying a (possibly typed) payload."""

    packet: Packet
    data: Optional[PayloadData] = None

    @property
    def command_id(self) -> int:
        return self.packet.command_id


@dataclass(frozen=True)
class ResponseMessage:
    """Acknowledgement for a previously sent command."""

    status: ResponseStatus
    command: Optional[CommandKind] = None  # None when the reply names no command
    sequence: Optional[int] = None
    detail: str = ""


@dataclass(frozen=True)
class StateMessage:
    state: CommandModeState


@dataclass(frozen=True)
class UnknownMessage:
    """Packet whose (type, command id) is not in the dispatch table."""

    packet_type: int
    command_id: int
    sequence: int
    payload: bytes


Message = Union[DataMessage, ResponseMessage, StateMessage, UnknownMessage]
