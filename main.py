"""
Hermes Trace Reader — Entry Point

Pipeline architecture:
    SerialHandler | UDPHandler → IngestStage → [frame_queue] → DecodeStage
                                                                   ↓
                                 SubscriberServer (/data) ↔ BroadcastRegistry
"""
import sys
import signal
import argparse
from threading import Event

from utils.config import Config
from utils.logger import Logger
from utils.constants import (
    TRANSPORT_SERIAL, TRANSPORT_UDP,
    DEFAULT_SERIAL_PORT, DEFAULT_BAUD_RATE, DEFAULT_SERIAL_TIMEOUT,
    DEFAULT_UDP_HOST, DEFAULT_UDP_PORT,
    DEFAULT_FRAME_LENGTH, DEFAULT_QUEUE_CAPACITY,
    DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT, SUBSCRIBER_PATH,
)
from utils.failures import FailureManager, TransportError, ConfigError

from core.frame_queue import FrameQueue
from core.registry import BroadcastRegistry


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Hermes - live trace reader for embedded targets")
    parser.add_argument(
        '--transport', '-t',
        choices=[TRANSPORT_SERIAL, TRANSPORT_UDP],
        default=None,
        help='Where the trace stream comes from (default from config)'
    )
    parser.add_argument('--device', '-d', type=str, default=None, help='Serial device path')
    parser.add_argument('--baud', '-b', type=int, default=None, help='Serial baud rate')
    parser.add_argument('--udp-port', type=int, default=None, help='UDP port to listen on')
    parser.add_argument('--http-port', '-p', type=int, default=None, help='Subscriber WebSocket port')
    parser.add_argument(
        '--frame-length',
        type=int,
        default=None,
        help='Payload bytes per frame for the target protocol version (68 or 72)'
    )
    parser.add_argument('--queue-capacity', type=int, default=None, help='Frame queue capacity')
    parser.add_argument('--config-dir', type=str, default=None, help='Directory of JSON config files')
    return parser.parse_args(argv)


def apply_args(config: Config, args) -> None:
    """Command-line flags take precedence over config files and environment."""
    overrides = {
        'transport.type': args.transport,
        'transport.serial.device': args.device,
        'transport.serial.baud_rate': args.baud,
        'transport.udp.port': args.udp_port,
        'server.port': args.http_port,
        'pipeline.frame_length': args.frame_length,
        'pipeline.queue_capacity': args.queue_capacity,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)


class HermesReader:
    """
    Hermes Trace Reader Orchestrator.

    Wires together:
      - A ByteSource (serial line or UDP socket)
      - Pipeline stages (Ingest → Decode) via a bounded FrameQueue
      - The BroadcastRegistry and the SubscriberServer that feeds it

    All values are read once here; nothing is reconfigured at runtime.
    """

    def __init__(self, config: Config):
        # ── 1. Foundation ────────────────────────────────────────────
        self.config = config
        Logger.setup(self.config.get('logging', {}))
        self.logger = Logger("HermesReader")
        self.logger.info("Initializing Hermes trace reader...")

        self.stop_event = Event()
        self.failures = FailureManager(self.config.get('failures', {}))

        self.transport_type = self.config.get('transport.type', TRANSPORT_SERIAL)
        self.frame_length = self.config.get_int('pipeline.frame_length', DEFAULT_FRAME_LENGTH)
        queue_capacity = self.config.get_int('pipeline.queue_capacity', DEFAULT_QUEUE_CAPACITY)
        if self.frame_length <= 0 or queue_capacity <= 0:
            raise ConfigError(
                f"frame_length and queue_capacity must be positive "
                f"(got {self.frame_length}, {queue_capacity})",
                critical=True,
            )

        # ── 2. Bounded Queue (pipeline backpressure) ─────────────────
        self.frame_queue = FrameQueue(capacity=queue_capacity)

        # ── 3. Subscribers ───────────────────────────────────────────
        self.registry = BroadcastRegistry(failures=self.failures)

        from Handlers.Subscriber_Server_Handler import SubscriberServer
        self.subscriber_server = SubscriberServer(
            registry=self.registry,
            host=self.config.get('server.host', DEFAULT_HTTP_HOST),
            port=self.config.get_int('server.port', DEFAULT_HTTP_PORT),
            path=self.config.get('server.path', SUBSCRIBER_PATH),
        )

        # ── 4. Byte Source (Serial or UDP) ───────────────────────────
        self.source = self._create_source()

        # ── 5. Pipeline Stages ───────────────────────────────────────
        from core.stages.ingest import IngestStage
        from core.stages.decode import DecodeStage

        self.ingest_stage = IngestStage(
            source=self.source,
            out_queue=self.frame_queue,
            stop_event=self.stop_event,
            frame_length=self.frame_length,
            source_type=self.transport_type,
            failures=self.failures,
        )
        self.decode_stage = DecodeStage(
            in_queue=self.frame_queue,
            registry=self.registry,
            stop_event=self.stop_event,
            failures=self.failures,
        )

        self.logger.info(
            f"Hermes trace reader initialized ({self.transport_type}, "
            f"{self.frame_length}-byte frames, queue capacity {queue_capacity})"
        )

    def _create_source(self):
        """Build the ByteSource for the configured transport."""
        if self.transport_type == TRANSPORT_SERIAL:
            from Handlers.Serial_Handler import SerialHandler
            return SerialHandler(
                device=self.config.get('transport.serial.device', DEFAULT_SERIAL_PORT),
                baud_rate=self.config.get_int('transport.serial.baud_rate', DEFAULT_BAUD_RATE),
                timeout=self.config.get_float('transport.serial.timeout', DEFAULT_SERIAL_TIMEOUT),
            )
        if self.transport_type == TRANSPORT_UDP:
            from Handlers.UDP_Handler import UDPHandler
            return UDPHandler(
                port=self.config.get_int('transport.udp.port', DEFAULT_UDP_PORT),
                host=self.config.get('transport.udp.host', DEFAULT_UDP_HOST),
                timeout=self.config.get_float('transport.udp.timeout', 0.5),
            )
        raise ConfigError(f"Unknown transport type: {self.transport_type}", critical=True)

    def _setup_signals(self):
        """Handle OS signals for graceful shutdown."""
        def handler(sig, frame):
            self.logger.info("Shutdown signal received")
            self.stop_event.set()
        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)

    def start(self):
        """
        Open the transport, start the stages and the subscriber server, and
        block until shutdown.

        Raises:
            TransportError: the transport or the listener could not be opened.
        """
        self.logger.info("Starting Hermes services...")

        if not self.source.start():
            raise TransportError(f"Could not open {self.transport_type} transport", critical=True)

        if not self.subscriber_server.start():
            self.source.stop()
            raise TransportError("Could not start subscriber server", critical=True)

        self._setup_signals()
        self.ingest_stage.start()
        self.decode_stage.start()
        self.logger.info("Pipeline stages running")

        try:
            while not self.stop_event.wait(timeout=1.0):
                pass
        finally:
            self.stop()

    def stop(self):
        """Shutdown all components."""
        self.stop_event.set()
        self.logger.info("Stopping Hermes trace reader...")

        for stage in [self.ingest_stage, self.decode_stage]:
            if stage.is_alive():
                stage.join(timeout=2.0)

        self.subscriber_server.stop()
        self.registry.close_all()
        self.source.stop()

        recent = self.failures.get_recent_history(5)
        if recent:
            self.logger.info(f"Last {len(recent)} failure(s) before shutdown:")
            for error in recent:
                self.logger.info(f"  {type(error).__name__}: {error.message}")

        self.logger.info("Hermes trace reader stopped")


def main(argv=None) -> int:
    args = parse_args(argv)
    config = Config(args.config_dir)
    apply_args(config, args)

    try:
        reader = HermesReader(config)
        reader.start()
    except (TransportError, ConfigError) as e:
        Logger("HermesReader").critical(f"Fatal: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
