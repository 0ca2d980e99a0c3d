"""Per-client WebSocket lifecycle."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional
from uuid import uuid4

from starlette.websockets import WebSocket, WebSocketState

from models.records import Frame
from services.hub import BroadcastHub, DeliveryResult

logger = logging.getLogger(__name__)

# "Try again later": the relay is at its connection limit.
CLOSE_TRY_AGAIN_LATER = 1013


class ConnectionState(str, Enum):
    connecting = "connecting"
    open = "open"
    closed = "closed"


class ConnectionHandler:
    """Owns one client's read loop and serialises writes pushed by the hub."""

    def __init__(
        self,
        websocket: WebSocket,
        hub: BroadcastHub,
        send_timeout: float = 5.0,
        max_connections: int = 1000,
    ) -> None:
        self.websocket = websocket
        self.hub = hub
        self.send_timeout = send_timeout
        self.max_connections = max_connections
        self.connection_id = uuid4().hex
        self.state = ConnectionState.connecting
        self._send_lock = asyncio.Lock()
        self._close_task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        registry = self.hub.registry
        try:
            # Refusal needs a completed handshake; a close before accept is an HTTP 403.
            await self.websocket.accept()
            self.state = ConnectionState.open
            if not registry.try_register(self, self.max_connections):
                self.state = ConnectionState.closed
                logger.warning(
                    "Connection refused: client limit reached",
                    extra={"connection_id": self.connection_id, "client_count": len(registry)},
                )
                await self.websocket.close(code=CLOSE_TRY_AGAIN_LATER)
                return
            logger.info(
                "Client connected",
                extra={"connection_id": self.connection_id, "client_count": len(registry)},
            )
            await self._read_loop()
        finally:
            self.state = ConnectionState.closed
            registry.deregister(self)
            await self._close_transport()
            logger.info(
                "Client disconnected",
                extra={"connection_id": self.connection_id, "client_count": len(registry)},
            )

    async def deliver(self, frame: Frame) -> DeliveryResult:
        if self.state is not ConnectionState.open:
            return DeliveryResult(self.connection_id, ok=False, error="connection closed")

        try:
            async with self._send_lock:
                await asyncio.wait_for(self._send(frame), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            error = f"send timed out after {self.send_timeout}s"
        except Exception as exc:  # noqa: BLE001 - any transport failure closes this client only
            error = repr(exc)
        else:
            return DeliveryResult(self.connection_id, ok=True)

        self.state = ConnectionState.closed
        # The broadcast pass waits on this call; the close handshake runs on its own.
        self._close_task = asyncio.create_task(self._close_transport())
        return DeliveryResult(self.connection_id, ok=False, error=error)

    async def _read_loop(self) -> None:
        while self.state is ConnectionState.open:
            try:
                message = await self.websocket.receive()
            except Exception as exc:  # noqa: BLE001 - read errors end this connection
                logger.info(
                    "Read failed; closing connection",
                    extra={"connection_id": self.connection_id, "reason": repr(exc)},
                )
                return

            if message["type"] == "websocket.disconnect":
                return

            frame: Frame | None = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            if frame is None:
                continue
            await self.hub.ingest(frame, origin=self)

    async def _send(self, frame: Frame) -> None:
        if isinstance(frame, bytes):
            await self.websocket.send_bytes(frame)
        else:
            await self.websocket.send_text(frame)

    async def _close_transport(self) -> None:
        ws = self.websocket
        if (
            ws.application_state != WebSocketState.CONNECTED
            or ws.client_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await asyncio.wait_for(ws.close(), timeout=self.send_timeout)
        except (asyncio.TimeoutError, RuntimeError, OSError) as exc:
            logger.debug(
                "Transport already gone while closing",
                extra={"connection_id": self.connection_id, "reason": repr(exc)},
            )
