"""
Global constants for the Hermes trace reader.
"""
from pathlib import Path

# Project Structure
BASE_DIR = Path(__file__).parent.parent
CONFIGS_DIR = BASE_DIR / "configs"
LOGS_DIR = BASE_DIR / "logs"

# Transport
TRANSPORT_SERIAL = "serial"
TRANSPORT_UDP = "udp"
DEFAULT_SERIAL_PORT = "/dev/cu.usbserial-0001"
DEFAULT_BAUD_RATE = 115200
DEFAULT_SERIAL_TIMEOUT = 0.5
DEFAULT_UDP_HOST = "0.0.0.0"
DEFAULT_UDP_PORT = 9000
UDP_MAX_DATAGRAM = 65535

# Framing
FRAME_SENTINEL = b"\r\n"
READ_ERROR_BACKOFF = 0.1  # seconds to wait after a failed transport read
FRAME_LENGTH_V1 = 68
FRAME_LENGTH_V2 = 72
DEFAULT_FRAME_LENGTH = FRAME_LENGTH_V2

# Pipeline
DEFAULT_QUEUE_CAPACITY = 20
QUEUE_POLL_INTERVAL = 0.5

# Subscriber Server
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080
SUBSCRIBER_PATH = "/data"
