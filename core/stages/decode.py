"""
Decode Stage — pulls frames from the frame queue, decodes trace records,
and broadcasts the resulting events to subscribers.

Runs in its own thread. A frame that fails to decode is reported and
dropped; losing one record never stalls the stream.
"""
import time
from threading import Thread, Event
from typing import Optional

from core.decoder import TraceDecoder
from core.events import Frame
from core.frame_queue import FrameQueue
from core.registry import BroadcastRegistry
from utils.failures import DecodeError, FailureManager
from utils.logger import Logger


class DecodeStage(Thread):
    """
    Pipeline Stage 1: decoding and fan-out.

    The only consumer of the frame queue, so events are broadcast in the
    order their frames were received.
    """

    def __init__(
        self,
        in_queue: FrameQueue,
        registry: BroadcastRegistry,
        stop_event: Event,
        decoder: Optional[TraceDecoder] = None,
        failures: Optional[FailureManager] = None,
    ):
        super().__init__(name="DecodeStage", daemon=True)
        self.in_queue = in_queue
        self.registry = registry
        self.stop_event = stop_event
        self.decoder = decoder or TraceDecoder()
        self.failures = failures or FailureManager()
        self.logger = Logger("DecodeStage")

        self.decoded = 0
        self.dropped = 0

    def run(self) -> None:
        """Main decode loop: pop a frame, decode it and broadcast the event."""
        self.logger.info("Decode stage running")

        while not self.stop_event.is_set():
            frame_msg = self.in_queue.pop(self.stop_event)
            if frame_msg is None:
                break
            try:
                self.process(frame_msg)
            except Exception as e:
                self.dropped += 1
                self.logger.error(f"Unexpected error processing frame {frame_msg.packet_id}: {e}")

        self.logger.info(f"Decode stage stopped ({self.decoded} decoded, {self.dropped} dropped)")

    def process(self, frame_msg: Frame) -> bool:
        """Decode and broadcast one frame. Returns False if it was dropped."""
        try:
            event = self.decoder.decode(frame_msg)
        except DecodeError as e:
            self.dropped += 1
            self.failures.record_failure(e)
            return False

        delivered = self.registry.broadcast(event)
        self.decoded += 1

        latency_ms = (time.time() - frame_msg.received_at) * 1000
        self.logger.debug(
            f"{event.trace_type.name} trace {event.header.trace_id} "
            f"on core {event.header.core_id} -> {delivered} subscriber(s) "
            f"({latency_ms:.1f} ms after receipt)"
        )
        return True
