"""
Frame Synchronizer — recovers fixed-size frames from an unreliable byte stream.

Every frame on the wire is ``frame_length`` payload bytes followed by the
sentinel. Alignment is unknown on a fresh connection, so the synchronizer
starts out RESYNCING and scans byte by byte until the sentinel goes past.
Once SYNCED it reads whole frames; a frame whose tail is not the sentinel
(or a failed transport read) sends it back to RESYNCING.

At most one frame's worth of data is lost per desynchronization.
"""
from enum import Enum
from threading import Event
from typing import Optional

from core.protocols import ByteSource
from utils.constants import FRAME_SENTINEL, READ_ERROR_BACKOFF
from utils.failures import FailureManager, FramingError, TransportReadError
from utils.logger import Logger


class SyncState(Enum):
    SYNCED = "synced"
    RESYNCING = "resyncing"


class FrameSynchronizer:
    """Turns a ByteSource into a sequence of sentinel-checked frames."""

    def __init__(
        self,
        source: ByteSource,
        frame_length: int,
        sentinel: bytes = FRAME_SENTINEL,
        stop_event: Optional[Event] = None,
        failures: Optional[FailureManager] = None,
    ):
        """
        Args:
            source: Open transport to read from.
            frame_length: Payload bytes per frame, sentinel excluded.
            sentinel: End-of-frame marker.
            stop_event: Set to make blocking reads give up.
            failures: Where framing and read errors are reported.
        """
        if frame_length <= 0:
            raise ValueError(f"frame_length must be positive, got {frame_length}")
        if not sentinel:
            raise ValueError("sentinel must not be empty")

        self.source = source
        self.frame_length = frame_length
        self.sentinel = bytes(sentinel)
        self.stop_event = stop_event or Event()
        self.failures = failures or FailureManager()
        self.logger = Logger("FrameSynchronizer")

        self.state = SyncState.RESYNCING
        self.frames_emitted = 0
        self.resync_count = 0
        self.bytes_discarded = 0

    @property
    def message_length(self) -> int:
        return self.frame_length + len(self.sentinel)

    def next_frame(self) -> Optional[bytes]:
        """
        Block until the next valid frame is read.

        Returns:
            The frame payload without its sentinel, or None once the stop
            event is set.
        """
        while not self.stop_event.is_set():
            if self.state is SyncState.RESYNCING:
                self._resync()
                continue

            frame = self._read_frame()
            if frame is not None:
                self.frames_emitted += 1
                return frame

        return None

    def _read_frame(self) -> Optional[bytes]:
        data = self._read_exact(self.message_length)
        if data is None:
            return None

        tail = data[self.frame_length:]
        if tail != self.sentinel:
            self.bytes_discarded += len(data)
            self._lose_sync(FramingError(
                f"Frame not terminated by sentinel (got {tail.hex()}), resyncing"
            ))
            return None

        return data[:self.frame_length]

    def _read_exact(self, size: int) -> Optional[bytes]:
        """Accumulate partial reads until ``size`` bytes arrive."""
        buf = bytearray()
        while len(buf) < size:
            if self.stop_event.is_set():
                return None
            try:
                chunk = self.source.read(size - len(buf))
            except OSError as e:
                self.bytes_discarded += len(buf)
                self._lose_sync(TransportReadError(f"Read failed mid-frame: {e}"))
                self.stop_event.wait(READ_ERROR_BACKOFF)
                return None
            buf += chunk
        return bytes(buf)

    def _resync(self) -> None:
        """Scan one byte at a time until the last two bytes equal the sentinel."""
        window = b""
        scanned = 0

        while not self.stop_event.is_set():
            try:
                byte = self.source.read(1)
            except OSError as e:
                self.failures.record_failure(TransportReadError(f"Read failed while resyncing: {e}"))
                # A dead port raises on every read
                self.stop_event.wait(READ_ERROR_BACKOFF)
                continue

            if not byte:
                continue

            scanned += 1
            window = (window + byte)[-len(self.sentinel):]
            if window == self.sentinel:
                # The sentinel itself is not counted as discarded
                self.bytes_discarded += scanned - len(self.sentinel)
                self.state = SyncState.SYNCED
                self.logger.info(f"Frame sync acquired after scanning {scanned} byte(s)")
                return

    def _lose_sync(self, error: Exception) -> None:
        self.failures.record_failure(error)
        self.state = SyncState.RESYNCING
        self.resync_count += 1
        self.logger.debug(f"Lost frame sync ({self.resync_count} resync(s) so far)")
