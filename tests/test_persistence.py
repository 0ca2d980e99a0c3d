"""Tests for the bounded background persistence queue."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from datastore.base import RecordStoreError
from datastore.memory_store import InMemoryRecordStore
from models.records import Reading
from services.persistence import PersistenceQueue


def _reading(bpm: float = 70.0) -> Reading:
    return Reading(bpm=bpm, spo2=None, timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))


class BlockingStore(InMemoryRecordStore):
    def __init__(self) -> None:
        super().__init__(name="blocking")
        self.started = threading.Event()
        self.release = threading.Event()

    def insert(self, reading: Reading) -> None:
        self.started.set()
        self.release.wait(timeout=5)
        super().insert(reading)


class FailingStore(InMemoryRecordStore):
    def insert(self, reading: Reading) -> None:
        raise RecordStoreError("disk on fire")


def test_submitted_readings_are_persisted() -> None:
    store = InMemoryRecordStore()
    queue = PersistenceQueue(store, workers=2, max_pending=10)

    futures = [queue.submit(_reading(bpm)) for bpm in (60, 61, 62)]
    for future in futures:
        assert future is not None
        future.result(timeout=5)
    queue.shutdown()

    assert sorted(r.bpm for r in store.query()) == [60, 61, 62]
    assert queue.pending == 0


def test_full_backlog_drops_readings(caplog) -> None:
    store = BlockingStore()
    queue = PersistenceQueue(store, workers=1, max_pending=1)
    caplog.set_level(logging.WARNING, logger="services.persistence")

    first = queue.submit(_reading(1))
    assert store.started.wait(timeout=5)
    second = queue.submit(_reading(2))

    assert first is not None
    assert second is None
    assert "backlog full" in caplog.text

    store.release.set()
    first.result(timeout=5)
    third = queue.submit(_reading(3))
    assert third is not None
    third.result(timeout=5)
    queue.shutdown()

    assert sorted(r.bpm for r in store.query()) == [1, 3]


def test_store_failures_are_logged_not_raised(caplog) -> None:
    queue = PersistenceQueue(FailingStore(name="failing"), workers=1)
    caplog.set_level(logging.ERROR, logger="services.persistence")

    future = queue.submit(_reading())
    assert future is not None
    future.result(timeout=5)
    queue.shutdown()

    assert "Failed to persist reading" in caplog.text


def test_shutdown_flushes_pending_and_rejects_new_work() -> None:
    store = BlockingStore()
    queue = PersistenceQueue(store, workers=1, max_pending=5)
    queue.submit(_reading(1))
    queue.submit(_reading(2))
    store.release.set()

    queue.shutdown(wait=True)

    assert len(store) == 2
    assert queue.submit(_reading(3)) is None
