"""Bounded background persistence of readings."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import BoundedSemaphore, Lock
from typing import Optional, Set

from datastore.base import RecordStore, RecordStoreError
from models.records import Reading

logger = logging.getLogger(__name__)


class PersistenceQueue:
    """Runs ``RecordStore.insert`` calls on a small worker pool.

    At most ``max_pending`` inserts may be queued or running; further
    submissions are dropped and logged instead of growing without bound.
    """

    def __init__(self, store: RecordStore, workers: int = 4, max_pending: int = 1000) -> None:
        self.store = store
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="persist")
        self._slots = BoundedSemaphore(max_pending)
        self._futures: Set[Future[None]] = set()
        self._futures_lock = Lock()
        self._closed = False

    def submit(self, reading: Reading) -> Optional[Future[None]]:
        """Schedule ``reading`` for insertion; returns ``None`` if it was dropped."""
        if self._closed:
            logger.warning("Persistence queue closed; reading dropped", extra={"source": reading.source})
            return None
        if not self._slots.acquire(blocking=False):
            logger.warning(
                "Persistence backlog full; reading dropped",
                extra={"source": reading.source, "pending": self.pending},
            )
            return None

        try:
            future = self.executor.submit(self._insert, reading)
        except RuntimeError:
            self._slots.release()
            logger.warning("Persistence executor shut down; reading dropped", extra={"source": reading.source})
            return None

        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._release)
        return future

    @property
    def pending(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting readings; by default flush what is already queued."""
        self._closed = True
        self.executor.shutdown(wait=wait, cancel_futures=not wait)

    def _release(self, future: Future[None]) -> None:
        with self._futures_lock:
            self._futures.discard(future)
        self._slots.release()

    def _insert(self, reading: Reading) -> None:
        try:
            self.store.insert(reading)
        except RecordStoreError as exc:
            logger.error(
                "Failed to persist reading",
                extra={"source": reading.source, "reason": str(exc), "store": self.store.name},
            )
        except Exception:  # pragma: no cover - unexpected backend failure
            logger.exception(
                "Unexpected error while persisting reading",
                extra={"source": reading.source, "store": self.store.name},
            )
