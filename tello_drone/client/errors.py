"""Exceptions raised by the session and its drivers."""

from typing import Optional


class SessionError(Exception):
    """Base class for failed session operations."""


class NotConnected(SessionError):
    """The session has no established link to the drone."""


class CommandPending(SessionError):
    """Another command is still waiting for its acknowledgement."""


class CommandTimeout(SessionError):
    """No acknowledgement arrived after the initial send and all retries."""

    def __init__(self, kind, attempts: int):
        super().__init__(f"{kind.name} not acknowledged after {attempts} sends")
        self.kind = kind
        self.attempts = attempts


class CommandRejected(SessionError):
    """The drone answered with an error or did not know the command."""

    def __init__(self, kind, detail: str = ""):
        message = f"{kind.name} rejected" if kind is not None else "Command rejected"
        super().__init__(f"{message}: {detail}" if detail else message)
        self.kind = kind
        self.detail = detail


class SessionDisconnected(SessionError):
    """The session was disconnected while the command was in flight."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(reason or "Session disconnected")
        self.reason = reason


class TransportError(SessionError):
    """A socket operation failed; the session is now disconnected."""


class ChannelAlreadyTaken(RuntimeError):
    """The receiving end of a delivery channel has already been handed out."""
