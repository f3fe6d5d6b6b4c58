"""Header based frame reader for binary robot protocols.

Reassembles frames from a byte stream that arrives in arbitrary chunks:
bytes in front of a recognized header are discarded, incomplete frames are
kept until the rest arrives and extra bytes are kept for the next frame.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

STREAM_READER_MAX_BUFFER_SIZE = 64 * 1024  # 64KB


class StreamReader:
    """Carry-over buffer that yields one complete frame per read.

    Args:
        headers: Byte sequences a frame may start with
        minimum_size: Bytes required before a frame is inspected at all
        frame_size: Function returning the full frame length from a buffer
            that starts with a header and holds at least `minimum_size`
            bytes. Without it the whole buffer is one frame.
        checksum: Predicate validating a complete frame. Frames failing it
            are dropped.
        max_size: Upper bound of the carry-over buffer, oldest data is
            dropped beyond it.

    Example:
        >>> reader = StreamReader(headers=[b"\\xff\\xff"], minimum_size=6,
        ...                       frame_size=lambda b: b[4] + 5)
        >>> reader.read_by_header(b"\\x00\\xff\\xff\\x00\\x01")
        >>> reader.read_by_header(b"\\x01\\xfd")
        b'\\xff\\xff\\x00\\x01\\x01\\xfd'
    """

    def __init__(self,
                 headers: Iterable[bytes] = (),
                 minimum_size: int = 0,
                 frame_size: Optional[Callable[[bytes], int]] = None,
                 checksum: Optional[Callable[[bytes], bool]] = None,
                 max_size: int = STREAM_READER_MAX_BUFFER_SIZE):
        self._headers: Tuple[bytes, ...] = tuple(bytes(h) for h in headers)
        self._minimum_size = minimum_size
        self._frame_size = frame_size
        self._checksum = checksum
        self._max_size = max_size
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._dropped_frames = 0

    def add_buffer(self, data: bytes) -> None:
        """Append bytes to the carry-over buffer without reading."""
        with self._lock:
            self._append(data)

    def read_by_header(self, data: bytes = b"") -> Optional[bytes]:
        """Append `data` and extract the next complete, valid frame.

        Returns:
            Frame bytes, or None if no complete frame is available yet.
        """
        with self._lock:
            self._append(data)

            while True:
                start = self._find_header()
                if start < 0:
                    self._keep_header_prefix()
                    return None
                if start > 0:
                    logger.debug(f"Discarding {start} bytes before header")
                    del self._buffer[:start]

                if len(self._buffer) < self._minimum_size:
                    return None

                size = self._frame_size(bytes(self._buffer)) if self._frame_size else len(self._buffer)
                if len(self._buffer) < size:
                    return None

                frame = bytes(self._buffer[:size])
                del self._buffer[:size]

                if self._checksum is not None and not self._checksum(frame):
                    self._dropped_frames += 1
                    logger.debug(f"Dropping frame with invalid checksum: {frame.hex()}")
                    continue
                return frame

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    @property
    def buffer_size(self) -> int:
        """Current number of bytes waiting in the carry-over buffer."""
        with self._lock:
            return len(self._buffer)

    @property
    def dropped_frames(self) -> int:
        """Number of frames rejected by the checksum so far."""
        return self._dropped_frames

    # Internal methods

    def _append(self, data: bytes) -> None:
        if not data:
            return
        self._buffer.extend(data)
        if len(self._buffer) > self._max_size:
            del self._buffer[:len(self._buffer) - self._max_size]
            logger.warning(f"Stream buffer trimmed to {self._max_size} bytes")

    def _find_header(self) -> int:
        if not self._headers:
            return 0 if self._buffer else -1
        positions = [self._buffer.find(h) for h in self._headers]
        found = [p for p in positions if p >= 0]
        return min(found) if found else -1

    def _keep_header_prefix(self) -> None:
        """Drop everything except a trailing partial header."""
        keep = 0
        for header in self._headers:
            for length in range(len(header) - 1, 0, -1):
                if length > keep and self._buffer.endswith(header[:length]):
                    keep = length
                    break
        if keep:
            del self._buffer[:-keep]
        else:
            self._buffer.clear()
