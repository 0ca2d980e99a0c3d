"""Domain models shared across services."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

DEFAULT_SOURCE = "esp32"

Frame = Union[str, bytes]


class FrameDecodeError(ValueError):
    """Raised when an inbound frame cannot be parsed as JSON."""


@dataclass(frozen=True, slots=True)
class Reading:
    """A single telemetry reading. Immutable once constructed."""

    bpm: Optional[float]
    spo2: Optional[float]
    timestamp: datetime
    source: str = DEFAULT_SOURCE

    def to_document(self) -> dict[str, Any]:
        return {
            "bpm": self.bpm,
            "spo2": self.spo2,
            "ts": self.timestamp,
            "source": self.source,
        }

    def to_json_dict(self) -> dict[str, Any]:
        payload = self.to_document()
        payload["ts"] = self.timestamp.isoformat()
        return payload


def decode_frame(frame: Frame) -> Any:
    """Parse a raw frame as JSON, raising ``FrameDecodeError`` when it is not parseable.

    Any JSON value is accepted; only objects contribute fields to a ``Reading``.
    """

    if isinstance(frame, bytes):
        try:
            text = frame.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError("frame is not valid UTF-8") from exc
    else:
        text = frame

    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise FrameDecodeError("frame is not valid JSON") from exc

    return payload


def reading_from_payload(
    payload: Any,
    received_at: Optional[datetime] = None,
) -> Reading:
    """Build a ``Reading`` applying the defaulting rules for missing fields."""

    if not isinstance(payload, Mapping):
        payload = {}
    ingested = received_at or datetime.now(timezone.utc)
    timestamp = parse_timestamp(payload.get("ts"))
    return Reading(
        bpm=_coerce_number(payload.get("bpm")),
        spo2=_coerce_number(payload.get("spo2")),
        timestamp=timestamp if timestamp is not None else ingested,
        source=_coerce_source(payload.get("source")),
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Interpret an ISO-8601 string or epoch milliseconds as an aware UTC datetime.

    Returns ``None`` for anything that cannot be interpreted.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool) or value is None:
        return None
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _coerce_source(value: Any) -> str:
    if isinstance(value, str):
        return value.strip() or DEFAULT_SOURCE
    if not value:
        return DEFAULT_SOURCE
    return str(value)
