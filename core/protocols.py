"""
Protocol definitions (interfaces) for the Hermes trace reader.

These define the contracts that transport and subscriber adapters must
implement, so stages can be driven by fakes in tests.
"""
from typing import Protocol, runtime_checkable


@runtime_checkable
class ByteSource(Protocol):
    """Interface for any byte-producing transport (serial line, UDP socket, etc.)."""

    def start(self) -> bool:
        """Open the transport. Returns True on success."""
        ...

    def read(self, size: int) -> bytes:
        """
        Read up to ``size`` bytes.

        Returns:
            Between 0 and ``size`` bytes; ``b""`` when the read timed out.

        Raises:
            OSError: the transport failed mid-stream.
        """
        ...

    def stop(self) -> None:
        """Release the transport."""
        ...


@runtime_checkable
class SubscriberConnection(Protocol):
    """Interface for a live subscriber that receives serialized events."""

    def send(self, message: str) -> None:
        """Deliver one serialized event. Raises on disconnect."""
        ...

    def close(self) -> None:
        """Close the connection and release its resources."""
        ...
