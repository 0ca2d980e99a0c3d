"""MongoDB-backed record store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from datastore.base import DEFAULT_QUERY_LIMIT, RecordStoreError, clamp_limit
from models.records import DEFAULT_SOURCE, Reading

logger = logging.getLogger(__name__)


class MongoRecordStore:
    """Stores readings as ``{bpm, spo2, ts, source}`` documents in one collection."""

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None) -> None:
        self._collection = collection
        self._client = client
        self.name = f"mongodb:{collection.name}"

    @classmethod
    def from_uri(
        cls,
        uri: str,
        database: str,
        collection: str,
        timeout_ms: int = 5000,
    ) -> "MongoRecordStore":
        try:
            client: MongoClient = MongoClient(
                uri,
                tz_aware=True,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
                socketTimeoutMS=timeout_ms,
            )
        except PyMongoError as exc:
            raise RecordStoreError(f"Invalid Mongo connection string: {exc}") from exc
        db = client.get_default_database(default=database)
        return cls(db.get_collection(collection), client=client)

    def insert(self, reading: Reading) -> None:
        try:
            self._collection.insert_one(reading.to_document())
        except PyMongoError as exc:
            raise RecordStoreError(f"Mongo insert failed: {exc}") from exc

    def query(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[Reading]:
        limit = clamp_limit(limit)
        try:
            cursor = (
                self._collection.find({}, {"_id": 0, "bpm": 1, "spo2": 1, "ts": 1, "source": 1})
                .sort([("ts", DESCENDING), ("_id", DESCENDING)])
                .limit(limit)
            )
            documents = list(cursor)
        except PyMongoError as exc:
            raise RecordStoreError(f"Mongo query failed: {exc}") from exc
        return [_reading_from_document(doc) for doc in documents]

    def ping(self) -> None:
        try:
            self._collection.database.command("ping")
            self._collection.create_index([("ts", DESCENDING)])
        except PyMongoError as exc:
            raise RecordStoreError(f"Mongo is unreachable: {exc}") from exc
        logger.info("Record store reachable", extra={"store": self.name})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def _reading_from_document(doc: Mapping[str, Any]) -> Reading:
    ts = doc.get("ts")
    if isinstance(ts, datetime):
        timestamp = ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    else:
        # Documents written by other producers may lack a usable ts.
        timestamp = datetime.fromtimestamp(0, tz=timezone.utc)
    return Reading(
        bpm=doc.get("bpm"),
        spo2=doc.get("spo2"),
        timestamp=timestamp,
        source=doc.get("source") or DEFAULT_SOURCE,
    )
