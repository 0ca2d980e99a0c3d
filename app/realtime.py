from __future__ import annotations

from fastapi import APIRouter, WebSocket

from services.connection import ConnectionHandler
from services.relay import build_default_relay
from settings import WEBSOCKET_PATH

router = APIRouter()


@router.websocket(WEBSOCKET_PATH)
async def telemetry_socket(websocket: WebSocket) -> None:
    relay = build_default_relay()
    handler = ConnectionHandler(
        websocket,
        relay.hub,
        send_timeout=relay.send_timeout,
        max_connections=relay.max_connections,
    )
    await handler.run()
