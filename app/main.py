from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router
from app.realtime import router as realtime_router
from datastore.base import RecordStoreError
from datastore.factory import build_default_store
from logging_config import configure_logging
from services.relay import build_default_relay
from settings import ConfigurationError, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    relay = build_default_relay()
    relay.store.ping()
    try:
        yield
    finally:
        relay.shutdown()
        build_default_relay.cache_clear()
        build_default_store.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Telemetry Relay",
        description="Persists sensor readings and rebroadcasts them to every connected WebSocket client.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.include_router(realtime_router)
    return app


def check_startup() -> None:
    """Fail before binding the socket when no reachable record store is configured."""
    settings = get_settings()
    settings.require_store_url()
    build_default_relay().store.ping()


def main() -> None:
    configure_logging()
    settings = get_settings()
    try:
        check_startup()
    except (ConfigurationError, RecordStoreError) as exc:
        logger.error("Refusing to start", extra={"reason": str(exc)})
        raise SystemExit(1) from exc

    logger.info("Starting telemetry relay on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


app = create_app()


if __name__ == "__main__":
    main()
