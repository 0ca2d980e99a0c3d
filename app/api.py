"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import HealthResponse, ReadingOut, RootResponse
from datastore.base import DEFAULT_QUERY_LIMIT, RecordStoreError, clamp_limit
from services.relay import RelayService, build_default_relay
from settings import WEBSOCKET_PATH

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay() -> RelayService:
    return build_default_relay()


def parse_limit(raw: Optional[str]) -> int:
    """Missing, non-integer or non-positive limits fall back to the default page size."""
    if raw is None:
        return DEFAULT_QUERY_LIMIT
    try:
        value = int(raw.strip())
    except ValueError:
        return DEFAULT_QUERY_LIMIT
    return clamp_limit(value)


@router.get(
    "/history",
    response_model=list[ReadingOut],
    summary="Most recent readings, newest first.",
)
def get_history(
    limit: Optional[str] = Query(None, description="Page size, capped at 1000 (default 100)."),
    relay: RelayService = Depends(get_relay),
) -> list[ReadingOut]:
    try:
        readings = relay.history(parse_limit(limit))
    except RecordStoreError as exc:
        logger.error("History query failed", extra={"reason": str(exc), "store": relay.store.name})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return [ReadingOut.from_reading(reading) for reading in readings]


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> HealthResponse:
    return HealthResponse()


@router.get(
    "/",
    response_model=RootResponse,
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> RootResponse:
    return RootResponse(
        detail="Telemetry relay is running. See /health for service status.",
        websocket_path=WEBSOCKET_PATH,
    )
