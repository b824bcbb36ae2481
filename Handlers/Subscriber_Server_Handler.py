"""
Subscriber Server Handler - WebSocket endpoint for live trace subscribers.

Upgrades HTTP requests on the subscriber path (``/data`` by default) into
WebSocket connections and registers them with the BroadcastRegistry. The
server only pushes; anything a client sends is read and ignored, and the
read side exists to notice when the client goes away.
"""
import threading
from http import HTTPStatus
from typing import Optional
from urllib.parse import urlsplit

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import Server, ServerConnection, serve

from core.registry import BroadcastRegistry
from utils.logger import Logger
from utils.constants import DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT, SUBSCRIBER_PATH


class SubscriberServer:
    """Accepts subscriber WebSocket connections on a single fixed path."""

    def __init__(self, registry: BroadcastRegistry, host: str = DEFAULT_HTTP_HOST,
                 port: int = DEFAULT_HTTP_PORT, path: str = SUBSCRIBER_PATH):
        """
        Args:
            registry: Registry that new connections join.
            host: Interface for the HTTP listener.
            port: Port for the HTTP listener (0 picks a free port).
            path: The only path that is upgraded.
        """
        self.registry = registry
        self.host = host
        self.port = port
        self.path = path
        self.logger = Logger("SubscriberServer")
        self.server: Optional[Server] = None
        self.thread: Optional[threading.Thread] = None

    @property
    def bound_port(self) -> Optional[int]:
        if self.server is None:
            return None
        return self.server.socket.getsockname()[1]

    def start(self) -> bool:
        """Bind the listener and serve connections from a background thread."""
        try:
            self.server = serve(
                self._handle_connection,
                self.host,
                self.port,
                process_request=self._check_path,
            )
        except OSError as e:
            self.logger.error(f"Unable to listen on {self.host}:{self.port}: {e}")
            return False

        self.thread = threading.Thread(
            target=self.server.serve_forever, daemon=True, name="SubscriberServer"
        )
        self.thread.start()
        self.logger.info(f"Subscriber server listening on ws://{self.host}:{self.bound_port}{self.path}")
        return True

    def stop(self) -> None:
        """Stop accepting connections."""
        if self.server is not None:
            self.server.shutdown()
        if self.thread is not None:
            self.thread.join(timeout=2.0)
        self.server = None
        self.thread = None
        self.logger.info("Subscriber server stopped")

    def _check_path(self, connection: ServerConnection, request):
        """Refuse the upgrade for anything but the subscriber path."""
        if urlsplit(request.path).path != self.path:
            self.logger.debug(f"Rejected upgrade for unknown path {request.path}")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    def _handle_connection(self, connection: ServerConnection) -> None:
        """Lifecycle of one subscriber: register, wait for disconnect, unregister."""
        self.logger.info(f"New subscriber connection from {connection.remote_address}")
        self.registry.register(connection)
        try:
            for _ in connection:
                pass
        except ConnectionClosed:
            pass
        finally:
            self.registry.unregister(connection)
