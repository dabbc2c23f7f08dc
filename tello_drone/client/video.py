"""Reassembly of video datagrams into whole encoded frames."""

import logging
from enum import Enum, auto
from typing import List, Optional

logger = logging.getLogger(__name__)

LAST_FRAGMENT_FLAG = 0x80
FRAGMENT_HEADER_SIZE = 2


class VideoFraming(Enum):
    """How video datagrams are split up on the wire."""

    BINARY = auto()  # [frame id][fragment index | 0x80 on last][data...]
    STREAM = auto()  # Raw chunks, a short chunk ends the frame


class VideoFrameAssembler:
    """
    Collects video datagrams and emits complete frames as opaque bytes.

    Partial frames are dropped when a fragment is missing or the frame id
    changes before the last fragment arrived.
    """

    def __init__(self, framing: VideoFraming = VideoFraming.BINARY, packet_size: int = 1460):
        """
        Initialize assembler.

        Args:
            framing: Datagram layout.
            packet_size: Size of a full chunk in STREAM framing.
        """
        self.framing = framing
        self.packet_size = packet_size
        self._parts: List[bytes] = []
        self._frame_id: Optional[int] = None
        self._expected_index = 0

        self.frames_completed = 0
        self.frames_dropped = 0

    def set_framing(self, framing: VideoFraming) -> None:
        if framing != self.framing:
            self.framing = framing
            self._clear()

    def push(self, datagram: bytes) -> Optional[bytes]:
        """
        Add one datagram.

        Args:
            datagram: Raw bytes from the video socket.

        Returns:
            A complete frame if this datagram finished one, else None.
        """
        if self.framing == VideoFraming.STREAM:
            return self._push_stream(datagram)
        return self._push_binary(datagram)

    def _push_stream(self, chunk: bytes) -> Optional[bytes]:
        if chunk:
            self._parts.append(bytes(chunk))
        if len(chunk) >= self.packet_size or not self._parts:
            return None
        return self._complete()

    def _push_binary(self, datagram: bytes) -> Optional[bytes]:
        if len(datagram) < FRAGMENT_HEADER_SIZE:
            logger.debug(f"Dropping short video datagram ({len(datagram)} bytes)")
            return None

        frame_id = datagram[0]
        index = datagram[1] & ~LAST_FRAGMENT_FLAG & 0xFF
        last = bool(datagram[1] & LAST_FRAGMENT_FLAG)

        if self._frame_id is not None and (
            frame_id != self._frame_id or index != self._expected_index
        ):
            logger.debug(
                f"Dropping partial frame {self._frame_id}: got frame {frame_id} fragment {index}"
            )
            self.frames_dropped += 1
            self._clear()

        if self._frame_id is None:
            if index != 0:
                return None
            self._frame_id = frame_id

        self._parts.append(bytes(datagram[FRAGMENT_HEADER_SIZE:]))
        self._expected_index = index + 1

        if last:
            return self._complete()
        return None

    def _complete(self) -> bytes:
        frame = b"".join(self._parts)
        self._clear()
        self.frames_completed += 1
        return frame

    def _clear(self) -> None:
        self._parts = []
        self._frame_id = None
        self._expected_index = 0
