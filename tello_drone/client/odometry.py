"""
Dead-reckoning position estimate from command-mode state lines.

Frame: x = right, y = forward, z = up, all in centimeters, relative to where
integration started. Heading is the drone's reported yaw in degrees,
clockwise positive. No filtering or correction is applied, so the estimate
drifts.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from ..protocol.messages import CommandModeState

logger = logging.getLogger(__name__)

# State velocities are reported in dm/s
VELOCITY_TO_CM = 10.0


@dataclass
class Odometry:
    """Accumulated position estimate."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    heading: float = 0.0  # degrees

    def apply(self, delta: "OdometryDelta") -> None:
        self.x += delta.dx
        self.y += delta.dy
        self.z += delta.dz
        self.heading = delta.heading


@dataclass(frozen=True)
class OdometryDelta:
    """Position change from one state sample to the next."""

    dx: float
    dy: float
    dz: float
    heading: float  # degrees, replaces the accumulated heading


def rotation_matrix_from_yaw(yaw: float) -> np.ndarray:
    """
    Create a rotation matrix for a clockwise-positive yaw.

    Args:
        yaw: Heading in degrees, clockwise positive.

    Returns:
        3x3 rotation matrix from the body frame into the start frame.
    """
    angle = -math.radians(yaw)
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def integrate(
    previous: Optional[CommandModeState],
    current: CommandModeState,
    elapsed_s: Optional[float] = None,
) -> OdometryDelta:
    """
    Compute the position change between two state samples.

    The velocities of ``current`` are multiplied by the elapsed time and
    rotated by the heading held before this sample. The first sample produces
    a zero delta that only carries its yaw.

    Args:
        previous: Previous state, or None for the first sample.
        current: New state.
        elapsed_s: Seconds between the samples, defaults to the difference of
            their receive times.

    Returns:
        OdometryDelta to add to the accumulator.
    """
    if previous is None:
        return OdometryDelta(0.0, 0.0, 0.0, float(current.yaw))

    if elapsed_s is None:
        elapsed_s = current.received_at - previous.received_at
    elapsed_s = max(0.0, elapsed_s)

    # Body frame: vgy right, vgx forward, vgz vertical
    body = np.array([current.vgy, current.vgx, current.vgz], dtype=float)
    body *= VELOCITY_TO_CM * elapsed_s

    dx, dy, dz = rotation_matrix_from_yaw(previous.yaw) @ body
    return OdometryDelta(float(dx), float(dy), float(dz), float(current.yaw))


class OdometryIntegrator:
    """Owns the odometry accumulator and the previous state sample."""

    def __init__(self):
        self._odometry = Odometry()
        self._previous: Optional[CommandModeState] = None

    def update(self, state: CommandModeState, elapsed_s: Optional[float] = None) -> OdometryDelta:
        """
        Integrate one state sample.

        Args:
            state: New command-mode state.
            elapsed_s: Seconds since the previous sample, defaults to the
                difference of receive times.

        Returns:
            The delta that was applied.
        """
        delta = integrate(self._previous, state, elapsed_s)
        self._odometry.apply(delta)
        self._previous = state
        return delta

    def snapshot(self) -> Odometry:
        """Copy of the current estimate."""
        return replace(self._odometry)

    def reset(self) -> None:
        self._odometry = Odometry()
        self._previous = None
        logger.debug("Odometry reset")
