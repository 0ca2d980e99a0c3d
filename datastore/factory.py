from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from datastore.base import RecordStore
from datastore.memory_store import InMemoryRecordStore
from datastore.mongo_store import MongoRecordStore
from settings import ConfigurationError, get_settings

_MONGO_SCHEMES = {"mongodb", "mongodb+srv"}


def create_store(
    url: str,
    database: str = "telemetry",
    collection: str = "sensordatas",
    timeout_ms: int = 5000,
) -> RecordStore:
    """Build a record store from its connection string.

    ``mongodb://`` and ``mongodb+srv://`` select MongoDB, ``memory://`` a
    process-local store and ``file:///path.jsonl`` a local JSON-lines store.
    """

    scheme = urlparse(url).scheme.lower()
    if scheme in _MONGO_SCHEMES:
        return MongoRecordStore.from_uri(url, database, collection, timeout_ms=timeout_ms)
    if scheme == "memory":
        return InMemoryRecordStore(name="memory")
    if scheme == "file":
        parsed = urlparse(url)
        raw_path = unquote(parsed.netloc + parsed.path)
        if not raw_path:
            raise ConfigurationError(f"Store URL {url!r} does not name a file.")
        return InMemoryRecordStore(name=f"file:{raw_path}", persistence_path=Path(raw_path))
    raise ConfigurationError(f"Unsupported record store URL scheme {scheme!r}.")


@lru_cache
def build_default_store(url: Optional[str] = None) -> RecordStore:
    settings = get_settings()
    store_url = settings.require_store_url() if url is None else url
    return create_store(
        store_url,
        database=settings.database_name,
        collection=settings.collection_name,
        timeout_ms=settings.store_timeout_ms,
    )
