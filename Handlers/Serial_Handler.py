"""Serial Handler - Reads the raw trace stream from the target's UART.

Implements the ByteSource protocol on top of pyserial. The read timeout
keeps the ingest loop responsive to shutdown.
"""
import serial
from typing import Optional

from utils.logger import Logger
from utils.constants import DEFAULT_BAUD_RATE, DEFAULT_SERIAL_TIMEOUT


class SerialHandler:
    """Handles the serial connection to the embedded target.

    Implements the ByteSource protocol:
        start() -> bool
        read(size) -> bytes
        stop() -> None
    """

    def __init__(self, device: str, baud_rate: int = DEFAULT_BAUD_RATE,
                 timeout: float = DEFAULT_SERIAL_TIMEOUT):
        """
        Initialize the serial handler.

        Args:
            device: Serial device path (e.g. /dev/ttyUSB0).
            baud_rate: Line speed the target transmits at.
            timeout: Read timeout in seconds.
        """
        self.device = device
        self.baud_rate = baud_rate
        self.timeout = timeout
        self.logger = Logger("SerialHandler")
        self.port: Optional[serial.Serial] = None

    # ── ByteSource protocol ──────────────────────────────────────────

    def start(self) -> bool:
        """Open the serial device and discard anything already buffered."""
        try:
            self.port = serial.Serial(
                port=self.device,
                baudrate=self.baud_rate,
                timeout=self.timeout,
            )
            # Stale bytes from before we opened are never aligned
            self.port.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            self.logger.error(f"Unable to open serial port {self.device}: {e}")
            self.port = None
            return False

        self.logger.info(f"Serial port opened: {self.device} @ {self.baud_rate} baud")
        return True

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; returns b"" when the read times out."""
        if self.port is None:
            raise serial.SerialException(f"Serial port {self.device} is not open")
        return self.port.read(size)

    def stop(self) -> None:
        """Close the serial device."""
        if self.port is not None:
            try:
                self.port.close()
            except (serial.SerialException, OSError) as e:
                self.logger.warning(f"Error closing serial port: {e}")
            self.port = None
            self.logger.info("Serial port closed")
