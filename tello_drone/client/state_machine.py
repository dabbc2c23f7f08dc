"""Phase tracking for the drone session."""

import logging
from enum import Enum, auto
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    """Connection phases of a drone session."""

    DISCONNECTED = auto()  # No link, connect() required
    CONNECTING_VIDEO = auto()  # conn_req sent, waiting for any reply
    CONNECTED = auto()  # Drone answered, binary protocol active
    COMMAND_MODE_HANDSHAKE = auto()  # "command" sent, waiting for ack
    COMMAND_MODE_READY = auto()  # Text commands accepted


class PhaseTransition:
    """Represents a valid phase transition."""

    def __init__(self, from_phase: SessionPhase, to_phase: SessionPhase):
        """
        Initialize phase transition.

        Args:
            from_phase: Source phase.
            to_phase: Target phase.
        """
        self.from_phase = from_phase
        self.to_phase = to_phase


class PhaseMachine:
    """
    State machine for the session phase.

    Phases only move forward through DISCONNECTED, CONNECTING_VIDEO,
    CONNECTED, COMMAND_MODE_HANDSHAKE and COMMAND_MODE_READY. DISCONNECTED
    is reachable from every phase.
    """

    def __init__(self):
        """Initialize phase machine in DISCONNECTED."""
        self._phase = SessionPhase.DISCONNECTED
        self._transitions: Dict[SessionPhase, List[PhaseTransition]] = {}
        self._phase_callbacks: Dict[SessionPhase, List[Callable]] = {}
        self._any_phase_callbacks: List[Callable] = []

        self._setup_transitions()

    def _setup_transitions(self) -> None:
        """Setup valid phase transitions."""
        self._add_transition(SessionPhase.DISCONNECTED, SessionPhase.CONNECTING_VIDEO)

        # Any reply from the drone completes the connect
        self._add_transition(SessionPhase.CONNECTING_VIDEO, SessionPhase.CONNECTED)

        self._add_transition(SessionPhase.CONNECTED, SessionPhase.COMMAND_MODE_HANDSHAKE)
        self._add_transition(
            SessionPhase.COMMAND_MODE_HANDSHAKE, SessionPhase.COMMAND_MODE_READY
        )

        # Any phase -> DISCONNECTED: socket failure or explicit disconnect
        for phase in SessionPhase:
            if phase != SessionPhase.DISCONNECTED:
                self._add_transition(phase, SessionPhase.DISCONNECTED)

    def _add_transition(self, from_phase: SessionPhase, to_phase: SessionPhase) -> None:
        """Add a valid transition."""
        if from_phase not in self._transitions:
            self._transitions[from_phase] = []

        self._transitions[from_phase].append(
            PhaseTransition(from_phase, to_phase)
        )

    @property
    def phase(self) -> SessionPhase:
        """Get current phase."""
        return self._phase

    def can_transition_to(self, target: SessionPhase) -> bool:
        """Check if transition to target phase is valid."""
        return any(t.to_phase == target for t in self._transitions.get(self._phase, []))

    def transition_to(self, target: SessionPhase) -> bool:
        """
        Attempt to transition to target phase.

        Args:
            target: Target phase.

        Returns:
            True if transition succeeded, False otherwise.
        """
        for transition in self._transitions.get(self._phase, []):
            if transition.to_phase == target:
                old_phase = self._phase
                self._phase = target

                self._notify_phase_change(old_phase, target)

                logger.info(f"Phase transition: {old_phase.name} -> {target.name}")
                return True

        logger.warning(f"Invalid transition: {self._phase.name} -> {target.name}")
        return False

    def _notify_phase_change(self, old_phase: SessionPhase, new_phase: SessionPhase) -> None:
        """Notify callbacks of phase change."""
        for callback in self._phase_callbacks.get(new_phase, []):
            try:
                callback(old_phase, new_phase)
            except Exception as e:
                logger.error(f"Phase callback error: {e}")

        for callback in self._any_phase_callbacks:
            try:
                callback(old_phase, new_phase)
            except Exception as e:
                logger.error(f"Phase callback error: {e}")

    def on_phase(
        self, phase: SessionPhase, callback: Callable[[SessionPhase, SessionPhase], None]
    ) -> None:
        """
        Register callback for entering a specific phase.

        Args:
            phase: Phase to watch.
            callback: Function(old_phase, new_phase) to call.
        """
        self._phase_callbacks.setdefault(phase, []).append(callback)

    def on_any_phase_change(
        self, callback: Callable[[SessionPhase, SessionPhase], None]
    ) -> None:
        """
        Register callback for any phase change.

        Args:
            callback: Function(old_phase, new_phase) to call.
        """
        self._any_phase_callbacks.append(callback)

    def is_disconnected(self) -> bool:
        return self._phase == SessionPhase.DISCONNECTED

    def is_connected(self) -> bool:
        """True once the drone has answered, in any of the later phases."""
        return self._phase not in (SessionPhase.DISCONNECTED, SessionPhase.CONNECTING_VIDEO)

    def is_command_mode(self) -> bool:
        return self._phase == SessionPhase.COMMAND_MODE_READY
