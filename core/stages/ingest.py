"""
Ingest Stage — drives the FrameSynchronizer and pushes frames into the frame queue.

Runs in its own thread. Uses a blocking push so that if the decode stage
falls behind, reading from the transport pauses (bounded queue
backpressure) instead of dropping frames.
"""
from threading import Thread, Event
from typing import Optional

from core.events import Frame
from core.frame_queue import FrameQueue
from core.protocols import ByteSource
from core.synchronizer import FrameSynchronizer
from utils.constants import FRAME_SENTINEL
from utils.failures import FailureManager
from utils.logger import Logger


class IngestStage(Thread):
    """
    Pipeline Stage 0: frame acquisition.

    Reads from an already-opened ByteSource (serial line, UDP socket, etc.)
    and pushes sentinel-checked Frame messages into the bounded queue.
    """

    def __init__(
        self,
        source: ByteSource,
        out_queue: FrameQueue,
        stop_event: Event,
        frame_length: int,
        sentinel: bytes = FRAME_SENTINEL,
        source_type: str = "unknown",
        failures: Optional[FailureManager] = None,
    ):
        """
        Args:
            source: Any object implementing the ByteSource protocol, already started.
            out_queue: Bounded queue to push Frame messages into.
            stop_event: Shared threading.Event, set to signal shutdown.
            frame_length: Payload bytes per frame for the target's protocol version.
            sentinel: End-of-frame marker.
            source_type: "serial" or "udp", attached to Frame metadata.
            failures: Shared failure tracker.
        """
        super().__init__(name="IngestStage", daemon=True)
        self.source = source
        self.out_queue = out_queue
        self.stop_event = stop_event
        self.source_type = source_type
        self.logger = Logger("IngestStage")
        self.synchronizer = FrameSynchronizer(
            source=source,
            frame_length=frame_length,
            sentinel=sentinel,
            stop_event=stop_event,
            failures=failures,
        )

    def run(self) -> None:
        """Main ingest loop, runs until stop_event is set."""
        self.logger.info(
            f"Ingest stage running ({self.source_type}, "
            f"{self.synchronizer.frame_length}-byte frames)"
        )

        while not self.stop_event.is_set():
            payload = self.synchronizer.next_frame()
            if payload is None:
                break

            frame_msg = Frame(payload=payload, source=self.source_type)
            if not self.out_queue.push(frame_msg, self.stop_event):
                break

        self.logger.info(
            f"Ingest stage stopped ({self.synchronizer.frames_emitted} frames, "
            f"{self.synchronizer.resync_count} resyncs, "
            f"{self.synchronizer.bytes_discarded} bytes discarded)"
        )
