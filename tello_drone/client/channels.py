"""
Single-owner delivery channels for state lines and video frames.

The core keeps the sending half. The receiving half can be taken exactly
once; later attempts raise ChannelAlreadyTaken. Channels are bounded and drop
the oldest item when a slow consumer lets them fill up.
"""

import asyncio
import logging
import queue
import threading
from typing import Generic, Optional, TypeVar

from .errors import ChannelAlreadyTaken

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_drop(channel) -> None:
    """
    Count a dropped item and log it.

    Warns once per overflow episode while the receiver is owned. Overflow of
    an untaken channel is expected and only logged at DEBUG.
    """
    channel.dropped += 1
    message = f"{channel.name} channel full, dropped oldest item ({channel.dropped} total)"
    if not channel.taken:
        logger.debug(message)
    elif not channel._overflowing:
        channel._overflowing = True
        logger.warning(message)
    else:
        logger.debug(message)


class ChannelReceiver(Generic[T]):
    """Receiving half of a SingleOwnerChannel."""

    def __init__(self, q: "queue.Queue[T]"):
        self._queue = q

    def get(self, timeout: Optional[float] = None) -> T:
        """
        Wait for the next item.

        Args:
            timeout: Seconds to wait, None waits forever.

        Raises:
            queue.Empty: If nothing arrived in time.
        """
        return self._queue.get(timeout=timeout)

    def try_get(self) -> Optional[T]:
        """Next item, or None if the channel is empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


class SingleOwnerChannel(Generic[T]):
    """Thread-safe bounded channel with a take-once receiver."""

    def __init__(self, name: str, capacity: int = 256):
        self.name = name
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=capacity)
        self._take_lock = threading.Lock()
        self._taken = False
        self.delivered = 0
        self.dropped = 0
        self._overflowing = False

    @property
    def taken(self) -> bool:
        return self._taken

    def take(self) -> ChannelReceiver[T]:
        """
        Hand out the receiving half.

        Returns:
            The receiver.

        Raises:
            ChannelAlreadyTaken: On every call after the first.
        """
        with self._take_lock:
            if self._taken:
                raise ChannelAlreadyTaken(f"{self.name} receiver already taken")
            self._taken = True
        return ChannelReceiver(self._queue)

    def put(self, item: T) -> None:
        """Deliver an item, dropping the oldest one if the channel is full."""
        dropped = False
        while True:
            try:
                self._queue.put_nowait(item)
                break
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    continue
                dropped = True
                _log_drop(self)
        self.delivered += 1
        if not dropped:
            self._overflowing = False


class AsyncChannelReceiver(Generic[T]):
    """Receiving half of an AsyncSingleOwnerChannel."""

    def __init__(self, q: "asyncio.Queue[T]"):
        self._queue = q

    async def get(self) -> T:
        return await self._queue.get()

    def try_get(self) -> Optional[T]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def __aiter__(self) -> "AsyncChannelReceiver[T]":
        return self

    async def __anext__(self) -> T:
        return await self._queue.get()

    def __len__(self) -> int:
        return self._queue.qsize()


class AsyncSingleOwnerChannel(Generic[T]):
    """Bounded asyncio channel with a take-once receiver. Use from one event loop."""

    def __init__(self, name: str, capacity: int = 256):
        self.name = name
        self._queue: "asyncio.Queue[T]" = asyncio.Queue(maxsize=capacity)
        self._taken = False
        self.delivered = 0
        self.dropped = 0
        self._overflowing = False

    @property
    def taken(self) -> bool:
        return self._taken

    def take(self) -> AsyncChannelReceiver[T]:
        """
        Hand out the receiving half.

        Raises:
            ChannelAlreadyTaken: On every call after the first.
        """
        if self._taken:
            raise ChannelAlreadyTaken(f"{self.name} receiver already taken")
        self._taken = True
        return AsyncChannelReceiver(self._queue)

    def put(self, item: T) -> None:
        """Deliver an item, dropping the oldest one if the channel is full."""
        if self._queue.full():
            self._queue.get_nowait()
            _log_drop(self)
        else:
            self._overflowing = False
        self._queue.put_nowait(item)
        self.delivered += 1
