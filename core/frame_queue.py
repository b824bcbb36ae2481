"""
Frame Queue — bounded FIFO between the IngestStage and the DecodeStage.

A full queue blocks the producer; this is the pipeline's only backpressure
point. Nothing is ever dropped. Blocking calls wake up every
QUEUE_POLL_INTERVAL seconds to check the shared stop event.
"""
from queue import Queue, Empty, Full
from threading import Event
from typing import Optional

from core.events import Frame
from utils.constants import DEFAULT_QUEUE_CAPACITY, QUEUE_POLL_INTERVAL


class FrameQueue:
    """Single-producer, single-consumer blocking frame channel."""

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY, poll_interval: float = QUEUE_POLL_INTERVAL):
        if capacity <= 0:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.poll_interval = poll_interval
        self._queue: "Queue[Frame]" = Queue(maxsize=capacity)

    def push(self, frame: Frame, stop_event: Optional[Event] = None) -> bool:
        """
        Enqueue a frame, blocking while the queue is full.

        Returns:
            False only if ``stop_event`` was set before the frame fit.
        """
        while True:
            if stop_event is not None and stop_event.is_set():
                return False
            try:
                self._queue.put(frame, timeout=self.poll_interval)
                return True
            except Full:
                continue

    def pop(self, stop_event: Optional[Event] = None) -> Optional[Frame]:
        """
        Dequeue the oldest frame, blocking while the queue is empty.

        Returns:
            The frame, or None if ``stop_event`` was set while waiting.
        """
        while True:
            if stop_event is not None and stop_event.is_set():
                return None
            try:
                return self._queue.get(timeout=self.poll_interval)
            except Empty:
                continue

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    def empty(self) -> bool:
        return self._queue.empty()
