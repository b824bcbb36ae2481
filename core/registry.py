"""
Broadcast Registry — the live set of subscriber connections.

Thread-safe. One lock covers register, unregister and the whole
broadcast fan-out, so every caller sees a consistent membership set: a
connection is never written to after removal and never closed twice.

Holding the lock for the full fan-out means one slow subscriber delays
delivery to the others for the duration of that broadcast.
"""
import threading
from typing import Optional, Set

from core.events import TraceEvent
from core.protocols import SubscriberConnection
from utils.failures import DeliveryError, FailureManager
from utils.logger import Logger


class BroadcastRegistry:
    """
    Fan-out of decoded trace events to every registered connection.

    Usage:
        registry = BroadcastRegistry()
        registry.register(conn)
        registry.broadcast(event)
        registry.unregister(conn)

    Membership is a set: registering a connection that is already present
    is absorbed, and a single unregister removes it completely.
    """

    def __init__(self, failures: Optional[FailureManager] = None):
        self._connections: Set[SubscriberConnection] = set()
        self._lock = threading.Lock()
        self.failures = failures or FailureManager()
        self.logger = Logger("BroadcastRegistry")

    def register(self, connection: SubscriberConnection) -> bool:
        """
        Add a connection.

        Returns:
            False if the connection was already registered.
        """
        with self._lock:
            if connection in self._connections:
                self.logger.debug("Connection already registered")
                return False
            self._connections.add(connection)
            count = len(self._connections)
        self.logger.info(f"Subscriber registered ({count} active)")
        return True

    def unregister(self, connection: SubscriberConnection) -> bool:
        """
        Remove a connection and close it. A no-op if it is not registered.

        Returns:
            True if the connection was present.
        """
        with self._lock:
            if connection not in self._connections:
                return False
            self._connections.discard(connection)
            self._close(connection)
            count = len(self._connections)
        self.logger.info(f"Subscriber unregistered ({count} active)")
        return True

    def broadcast(self, event: TraceEvent) -> int:
        """
        Deliver an event to every registered connection.

        The event is serialized once. A connection whose send fails is
        removed and closed; delivery carries on with the rest.

        Returns:
            Number of connections that accepted the event.
        """
        message = event.to_json()
        delivered = 0

        with self._lock:
            for connection in list(self._connections):
                try:
                    connection.send(message)
                    delivered += 1
                except Exception as e:
                    self._connections.discard(connection)
                    self._close(connection)
                    self.failures.record_failure(
                        DeliveryError(f"Dropping subscriber after failed send: {e}")
                    )

        return delivered

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def close_all(self) -> None:
        """Close and forget every connection (shutdown)."""
        with self._lock:
            connections = list(self._connections)
            self._connections.clear()
            for connection in connections:
                self._close(connection)
        if connections:
            self.logger.info(f"Closed {len(connections)} subscriber(s)")

    def _close(self, connection: SubscriberConnection) -> None:
        try:
            connection.close()
        except Exception as e:
            self.logger.debug(f"Error while closing subscriber: {e}")
