"""Decode, persist and rebroadcast inbound telemetry frames."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Hashable, Optional, Protocol

from models.records import Frame, FrameDecodeError, decode_frame, reading_from_payload
from services.persistence import PersistenceQueue
from services.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of writing one frame to one connection."""

    connection_id: Hashable
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class IngestOutcome:
    accepted: bool
    delivered: int = 0
    failed: int = 0
    reason: Optional[str] = None


class Recipient(Protocol):
    @property
    def connection_id(self) -> Hashable:
        ...

    async def deliver(self, frame: Frame) -> DeliveryResult:
        ...


class BroadcastHub:
    """Fans every valid frame out to all registered connections, the sender included."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        persistence: PersistenceQueue,
        max_frame_bytes: int = 64 * 1024,
    ) -> None:
        self.registry = registry
        self.persistence = persistence
        self.max_frame_bytes = max_frame_bytes

    async def ingest(self, frame: Frame, origin: Optional[Recipient] = None) -> IngestOutcome:
        """Handle one inbound frame. Never raises."""
        origin_id = getattr(origin, "connection_id", None)
        try:
            size = len(frame.encode("utf-8")) if isinstance(frame, str) else len(frame)
            if size > self.max_frame_bytes:
                logger.debug(
                    "Oversized frame dropped",
                    extra={"connection_id": origin_id, "frame_bytes": size},
                )
                return IngestOutcome(accepted=False, reason="oversized")

            try:
                payload = decode_frame(frame)
            except FrameDecodeError as exc:
                logger.debug(
                    "Malformed frame dropped",
                    extra={"connection_id": origin_id, "reason": str(exc), "frame_bytes": size},
                )
                return IngestOutcome(accepted=False, reason="malformed")

            reading = reading_from_payload(payload)
            self.persistence.submit(reading)

            results = await self.broadcast(frame)
        except Exception:  # pragma: no cover - ingest must not break the read loop
            logger.exception("Unexpected error while ingesting frame", extra={"connection_id": origin_id})
            return IngestOutcome(accepted=False, reason="internal")

        delivered = sum(1 for result in results if result.ok)
        failed = len(results) - delivered
        logger.debug(
            "Frame rebroadcast",
            extra={
                "connection_id": origin_id,
                "source": reading.source,
                "delivered": delivered,
                "failed": failed,
            },
        )
        return IngestOutcome(accepted=True, delivered=delivered, failed=failed)

    async def broadcast(self, frame: Frame) -> list[DeliveryResult]:
        """Deliver ``frame`` verbatim to a registry snapshot, dropping failed recipients."""
        targets = self.registry.snapshot()
        if not targets:
            return []

        outcomes = await asyncio.gather(
            *(target.deliver(frame) for target in targets),
            return_exceptions=True,
        )

        results: list[DeliveryResult] = []
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                outcome = DeliveryResult(
                    connection_id=target.connection_id, ok=False, error=repr(outcome)
                )
            if not outcome.ok:
                if self.registry.deregister(target):
                    logger.info(
                        "Dropped client after failed delivery",
                        extra={
                            "connection_id": target.connection_id,
                            "reason": outcome.error,
                            "client_count": len(self.registry),
                        },
                    )
            results.append(outcome)
        return results
