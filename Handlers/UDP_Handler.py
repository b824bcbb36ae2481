"""UDP Handler - Receives the trace stream as UDP datagrams.

Implements the ByteSource protocol, same interface as SerialHandler.
Each datagram is treated as a contiguous chunk of the byte stream and
handed out through read(); the remainder stays buffered for the next
call. UDP may reorder or drop datagrams, which the synchronizer absorbs
as ordinary misalignment.
"""
import socket
from typing import Optional

from utils.logger import Logger
from utils.constants import DEFAULT_UDP_HOST, UDP_MAX_DATAGRAM


class UDPHandler:
    """Handles a UDP listener for the trace stream.

    Implements the ByteSource protocol:
        start() -> bool
        read(size) -> bytes
        stop() -> None
    """

    def __init__(self, port: int, host: str = DEFAULT_UDP_HOST, timeout: float = 0.5):
        """
        Initialize the UDP handler.

        Args:
            port: Port to listen on (0 picks a free port).
            host: Interface to bind.
            timeout: Receive timeout in seconds.
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logger = Logger("UDPHandler")
        self.sock: Optional[socket.socket] = None
        self._pending = bytearray()
        self.datagrams_received = 0

    @property
    def bound_port(self) -> Optional[int]:
        """The port actually bound, once started."""
        if self.sock is None:
            return None
        return self.sock.getsockname()[1]

    # ── ByteSource protocol ──────────────────────────────────────────

    def start(self) -> bool:
        """Bind the UDP socket."""
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.settimeout(self.timeout)
        except OSError as e:
            self.logger.error(f"Unable to listen on UDP {self.host}:{self.port}: {e}")
            return False

        self.sock = sock
        self.logger.info(f"Listening for trace datagrams on UDP {self.host}:{self.bound_port}")
        return True

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes, receiving a new datagram when the buffer is empty."""
        if self.sock is None:
            raise OSError("UDP socket is not open")

        if not self._pending:
            try:
                data, _ = self.sock.recvfrom(UDP_MAX_DATAGRAM)
            except socket.timeout:
                return b""
            self.datagrams_received += 1
            self._pending += data

        chunk = bytes(self._pending[:size])
        del self._pending[:size]
        return chunk

    def stop(self) -> None:
        """Close the UDP socket."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
            self._pending.clear()
            self.logger.info("UDP socket closed")
