"""Client-side session, scheduling and drivers for the Tello drone."""

from .config import Config, default_config
from .errors import (
    SessionError,
    NotConnected,
    CommandPending,
    CommandTimeout,
    CommandRejected,
    SessionDisconnected,
    TransportError,
    ChannelAlreadyTaken,
)
from .state_machine import SessionPhase, PhaseMachine
from .session import CommandSession, CommandHandle, PendingCommand, SessionStats
from .odometry import Odometry, OdometryDelta, OdometryIntegrator, integrate
from .rc_state import RcState
from .transmit import TransmitScheduler
from .channels import SingleOwnerChannel, AsyncSingleOwnerChannel
from .video import VideoFrameAssembler, VideoFraming
from .drone_meta import DroneMeta
from .drone import Drone
from .async_drone import AsyncDrone

__all__ = [
    "Config",
    "default_config",
    "SessionError",
    "NotConnected",
    "CommandPending",
    "CommandTimeout",
    "CommandRejected",
    "SessionDisconnected",
    "TransportError",
    "ChannelAlreadyTaken",
    "SessionPhase",
    "PhaseMachine",
    "CommandSession",
    "CommandHandle",
    "PendingCommand",
    "SessionStats",
    "Odometry",
    "OdometryDelta",
    "OdometryIntegrator",
    "integrate",
    "RcState",
    "TransmitScheduler",
    "SingleOwnerChannel",
    "AsyncSingleOwnerChannel",
    "VideoFrameAssembler",
    "VideoFraming",
    "DroneMeta",
    "Drone",
    "AsyncDrone",
]
