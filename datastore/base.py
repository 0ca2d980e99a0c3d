"""Record store contract consumed by the relay core."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from models.records import Reading

MAX_QUERY_LIMIT = 1000
DEFAULT_QUERY_LIMIT = 100


class RecordStoreError(RuntimeError):
    """Raised by record stores when an operation against the backend fails."""


@runtime_checkable
class RecordStore(Protocol):
    name: str

    def insert(self, reading: Reading) -> None:
        ...

    def query(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[Reading]:
        """Return at most ``limit`` readings, newest first."""
        ...

    def ping(self) -> None:
        ...

    def close(self) -> None:
        ...


def clamp_limit(limit: int) -> int:
    if limit <= 0:
        return DEFAULT_QUERY_LIMIT
    return min(limit, MAX_QUERY_LIMIT)
