"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.records import Reading


class ReadingOut(BaseModel):
    """A stored reading as returned by the history endpoint."""

    bpm: Optional[float] = None
    spo2: Optional[float] = None
    ts: datetime = Field(..., description="Reading time (ingestion time when the sensor sent none).")
    source: str

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(
            bpm=reading.bpm,
            spo2=reading.spo2,
            ts=reading.timestamp,
            source=reading.source,
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class RootResponse(BaseModel):
    status: str = "ok"
    detail: str
    websocket_path: str
