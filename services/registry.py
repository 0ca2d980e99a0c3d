"""Live set of connected clients."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Generic, Hashable, Protocol, TypeVar


class HasConnectionId(Protocol):
    @property
    def connection_id(self) -> Hashable:
        ...


ConnectionT = TypeVar("ConnectionT", bound=HasConnectionId)


class ConnectionRegistry(Generic[ConnectionT]):
    """Thread-safe membership of open connections.

    Snapshots are copies taken under the lock, in registration order, so
    callers iterate and send without holding it.
    """

    def __init__(self) -> None:
        self._connections: Dict[Hashable, ConnectionT] = {}
        self._lock = Lock()

    def register(self, connection: ConnectionT) -> None:
        with self._lock:
            self._connections[connection.connection_id] = connection

    def try_register(self, connection: ConnectionT, limit: int) -> bool:
        """Register ``connection`` unless ``limit`` connections are already open."""
        with self._lock:
            if len(self._connections) >= limit:
                return False
            self._connections[connection.connection_id] = connection
            return True

    def deregister(self, connection: ConnectionT) -> bool:
        with self._lock:
            current = self._connections.get(connection.connection_id)
            if current is not connection:
                return False
            del self._connections[connection.connection_id]
            return True

    def snapshot(self) -> list[ConnectionT]:
        with self._lock:
            return list(self._connections.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        connection_id = getattr(connection, "connection_id", None)
        with self._lock:
            return self._connections.get(connection_id) is connection
