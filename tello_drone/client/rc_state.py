"""Shared remote-control vector written by input handlers and read every tick."""

import threading
from typing import Tuple


def _clamp(value: float, lo: float = -1.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, float(value)))


class _Axis:
    """One normalized axis with its own lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0.0

    def set(self, value: float) -> None:
        value = _clamp(value)
        with self._lock:
            self._value = value

    def get(self) -> float:
        with self._lock:
            return self._value


class RcState:
    """
    Four-axis RC vector, each axis clamped to [-1.0, 1.0].

    Every axis is synchronized on its own, so a writer on one axis never
    blocks a reader of another. There is no multi-axis atomicity.
    """

    def __init__(self):
        self._left_right = _Axis()
        self._forward_back = _Axis()
        self._up_down = _Axis()
        self._yaw = _Axis()
        self._flag_lock = threading.Lock()
        self._fast = False
        self._start_engines = False

    # Left / right

    def go_left(self) -> None:
        self._left_right.set(-1.0)

    def go_right(self) -> None:
        self._left_right.set(1.0)

    def stop_left_right(self) -> None:
        self._left_right.set(0.0)

    def go_left_right(self, value: float) -> None:
        """Set left/right directly, negative is left."""
        self._left_right.set(value)

    # Forward / back

    def go_forward(self) -> None:
        self._forward_back.set(1.0)

    def go_back(self) -> None:
        self._forward_back.set(-1.0)

    def stop_forward_back(self) -> None:
        self._forward_back.set(0.0)

    def go_forward_back(self, value: float) -> None:
        """Set forward/back directly, negative is back."""
        self._forward_back.set(value)

    # Up / down

    def go_up(self) -> None:
        self._up_down.set(1.0)

    def go_down(self) -> None:
        self._up_down.set(-1.0)

    def stop_up_down(self) -> None:
        self._up_down.set(0.0)

    def go_up_down(self, value: float) -> None:
        """Set up/down directly, negative is down."""
        self._up_down.set(value)

    # Yaw

    def turn_clockwise(self) -> None:
        self._yaw.set(1.0)

    def turn_counter_clockwise(self) -> None:
        self._yaw.set(-1.0)

    def stop_turn(self) -> None:
        self._yaw.set(0.0)

    def turn(self, value: float) -> None:
        """Set yaw rate directly, negative is counter-clockwise."""
        self._yaw.set(value)

    # Flags

    def set_fast(self, fast: bool) -> None:
        with self._flag_lock:
            self._fast = bool(fast)

    def start_engines(self) -> None:
        """Request the motor-start stick pattern for the next tick."""
        with self._flag_lock:
            self._start_engines = True

    def reset(self) -> None:
        """Center all axes and clear the flags."""
        for axis in (self._left_right, self._forward_back, self._up_down, self._yaw):
            axis.set(0.0)
        with self._flag_lock:
            self._fast = False
            self._start_engines = False

    # Readers

    @property
    def left_right(self) -> float:
        return self._left_right.get()

    @property
    def forward_back(self) -> float:
        return self._forward_back.get()

    @property
    def up_down(self) -> float:
        return self._up_down.get()

    @property
    def yaw(self) -> float:
        return self._yaw.get()

    @property
    def fast(self) -> bool:
        with self._flag_lock:
            return self._fast

    def axes(self) -> Tuple[float, float, float, float]:
        """Current (left_right, forward_back, up_down, yaw)."""
        return self.left_right, self.forward_back, self.up_down, self.yaw

    def take_stick_parameters(self) -> Tuple[float, float, float, float, bool]:
        """
        Read the values for one stick packet.

        A pending start-engines request is consumed here and replaces the
        axes with both sticks pushed into the lower inner corners.

        Returns:
            (left_right, forward_back, up_down, yaw, fast).
        """
        with self._flag_lock:
            if self._start_engines:
                self._start_engines = False
                return -1.0, -1.0, -1.0, 1.0, True
            fast = self._fast
        return self.left_right, self.forward_back, self.up_down, self.yaw, fast
