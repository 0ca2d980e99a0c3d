from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Optional

from datastore.base import DEFAULT_QUERY_LIMIT, RecordStoreError, clamp_limit
from models.records import Reading


class InMemoryRecordStore:
    """Process-local record store with optional append-only JSON-lines persistence."""

    def __init__(self, name: str = "memory", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._readings: list[Reading] = []
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, reading: Reading) -> None:
        with self._lock:
            self._append_to_disk(reading)
            self._readings.append(reading)

    def query(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[Reading]:
        limit = clamp_limit(limit)
        with self._lock:
            indexed = list(enumerate(self._readings))
        # Newest timestamp first; later insertions win ties.
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        return [reading for _, reading in indexed[:limit]]

    def ping(self) -> None:
        if self.persistence_path and not self.persistence_path.parent.is_dir():
            raise RecordStoreError(
                f"Persistence directory {str(self.persistence_path.parent)!r} is missing."
            )

    def close(self) -> None:
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)

    def _append_to_disk(self, reading: Reading) -> None:
        if not self.persistence_path:
            return
        line = json.dumps(reading.to_json_dict(), sort_keys=True)
        try:
            with self.persistence_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise RecordStoreError(
                f"Failed to append reading to {str(self.persistence_path)!r}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise RecordStoreError(
                f"Failed to read {str(self.persistence_path)!r}: {exc}"
            ) from exc

        for line in lines:
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
                reading = Reading(
                    bpm=payload.get("bpm"),
                    spo2=payload.get("spo2"),
                    timestamp=datetime.fromisoformat(payload["ts"]),
                    source=payload["source"],
                )
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                # A torn final line from an interrupted append is skipped.
                continue
            self._readings.append(reading)
