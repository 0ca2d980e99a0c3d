from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional

import httpx
import typer
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP and WebSocket client for the relay."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"limit": limit} if limit is not None else None
        try:
            response = self._client.get("/history", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when fetching history.")
        return payload

    def send_reading(self, payload: Dict[str, Any], wait: bool = False) -> Optional[str]:
        """Push one reading; with ``wait`` return the relay's echo of it."""
        message = json.dumps(payload)
        try:
            with connect(self._config.websocket_url, open_timeout=self._config.timeout) as ws:
                ws.send(message)
                if not wait:
                    return None
                while True:
                    echo = ws.recv(timeout=self._config.timeout)
                    if isinstance(echo, bytes):
                        echo = echo.decode("utf-8", errors="replace")
                    if echo == message:
                        return echo
        except TimeoutError:
            typer.secho("Timed out waiting for the relay to echo the reading.", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        except (OSError, WebSocketException) as exc:
            self._handle_transport_error(exc)
        return None

    def stream(self, count: Optional[int] = None) -> Iterator[str]:
        """Yield broadcast frames until ``count`` frames were seen or the relay closes."""
        received = 0
        try:
            with connect(self._config.websocket_url, open_timeout=self._config.timeout) as ws:
                while count is None or received < count:
                    frame = ws.recv()
                    received += 1
                    if isinstance(frame, bytes):
                        frame = frame.decode("utf-8", errors="replace")
                    yield frame
        except ConnectionClosed:
            return
        except (OSError, WebSocketException) as exc:
            self._handle_transport_error(exc)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_transport_error(exc: Exception) -> None:
        typer.secho(f"Could not reach the relay: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
