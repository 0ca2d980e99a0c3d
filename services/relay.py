"""Wiring of the record store, persistence queue, registry and hub."""

from __future__ import annotations

import logging
from functools import lru_cache

from datastore.base import DEFAULT_QUERY_LIMIT, RecordStore
from datastore.factory import build_default_store
from models.records import Reading
from services.hub import BroadcastHub
from services.persistence import PersistenceQueue
from services.registry import ConnectionRegistry
from settings import get_settings

logger = logging.getLogger(__name__)


class RelayService:
    """Owns the shared state of one relay process."""

    def __init__(
        self,
        store: RecordStore,
        persist_workers: int = 4,
        persist_queue_limit: int = 1000,
        max_frame_bytes: int = 64 * 1024,
        send_timeout: float = 5.0,
        max_connections: int = 1000,
    ) -> None:
        self.store = store
        self.registry: ConnectionRegistry = ConnectionRegistry()
        self.persistence = PersistenceQueue(
            store, workers=persist_workers, max_pending=persist_queue_limit
        )
        self.hub = BroadcastHub(
            self.registry, self.persistence, max_frame_bytes=max_frame_bytes
        )
        self.send_timeout = send_timeout
        self.max_connections = max_connections

    def history(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[Reading]:
        return self.store.query(limit)

    def shutdown(self) -> None:
        """Flush pending inserts, then release the store."""
        self.persistence.shutdown(wait=True)
        self.store.close()
        logger.info("Relay stopped", extra={"store": self.store.name})


@lru_cache
def build_default_relay() -> RelayService:
    """Factory that wires the relay from environment settings."""
    settings = get_settings()
    return RelayService(
        store=build_default_store(),
        persist_workers=settings.persist_workers,
        persist_queue_limit=settings.persist_queue_limit,
        max_frame_bytes=settings.max_frame_bytes,
        send_timeout=settings.send_timeout,
        max_connections=settings.max_connections,
    )
