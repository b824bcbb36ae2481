"""
Structured error handling and failure tracking for the Hermes trace reader.

Only TransportError raised while opening a transport is fatal; every other
HermesError is recorded here and absorbed by the stage that hit it.
"""
import threading
import time
from typing import Dict, List, Optional

from utils.logger import Logger


class HermesError(Exception):
    """Base class for all Hermes exceptions."""
    def __init__(self, message: str, critical: bool = False):
        super().__init__(message)
        self.message = message
        self.critical = critical
        self.timestamp = time.time()


class TransportError(HermesError):
    """Exception raised when a transport cannot be opened."""
    pass


class TransportReadError(HermesError):
    """Exception raised for a failed read on an open transport."""
    pass


class FramingError(HermesError):
    """Exception raised when a frame is not followed by the sentinel."""
    pass


class DecodeError(HermesError):
    """Exception raised when a frame payload cannot be parsed."""
    pass


class UnknownRecordTypeError(DecodeError):
    """Exception raised for a frame whose type tag matches no record layout."""
    def __init__(self, tag: int):
        super().__init__(f"Unrecognized record type tag {tag}")
        self.tag = tag


class DeliveryError(HermesError):
    """Exception raised when an event cannot be written to a subscriber."""
    pass


class ConfigError(HermesError):
    """Exception raised for configuration-related failures."""
    pass


class FailureManager:
    """Tracks and manages recurring failures to improve system resilience."""

    def __init__(self, settings: Optional[dict] = None):
        """
        Initialize the failure manager.

        Args:
            settings: Dictionary containing failure thresholds (from failures.json)
        """
        self.logger = Logger("FailureManager")

        self.settings = settings or {}
        self.threshold = self.settings.get('threshold', 20)
        self.window_seconds = self.settings.get('window_seconds', 60)

        self.failures: Dict[str, List[float]] = {}
        self.history: List[HermesError] = []
        self._max_history = self.settings.get('max_history', 100)
        self._lock = threading.Lock()

    def record_failure(self, error: Exception):
        """
        Record a failure incident (thread-safe).

        Args:
            error: The exception that occurred.
        """
        with self._lock:
            error_type = type(error).__name__
            now = time.time()

            cutoff = now - self.window_seconds
            recent = [t for t in self.failures.get(error_type, []) if t > cutoff]
            recent.append(now)
            self.failures[error_type] = recent

            if isinstance(error, HermesError):
                self.history.append(error)
                msg = f"Failure detected: {error_type} - {error.message}"
                if error.critical:
                    self.logger.error(f"CRITICAL: {msg}")
                else:
                    self.logger.warning(msg)
            else:
                self.logger.error(f"Unexpected failure: {error_type} - {error}")

            if len(self.history) > self._max_history:
                self.history = self.history[-self._max_history:]

            # Alert once, on the failure that crosses the threshold
            if len(recent) == self.threshold:
                self.logger.warning(
                    f"Resilience Alert: '{error_type}' reached threshold "
                    f"({self.threshold} in {self.window_seconds}s)"
                )

    def count(self, error_type: str) -> int:
        """Number of failures of this type inside the current window."""
        with self._lock:
            cutoff = time.time() - self.window_seconds
            return len([t for t in self.failures.get(error_type, []) if t > cutoff])

    def get_recent_history(self, count: int = 10) -> List[HermesError]:
        """Return the most recent failures."""
        with self._lock:
            return self.history[-count:]
