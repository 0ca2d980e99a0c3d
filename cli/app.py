from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_frame, render_history


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with a running telemetry relay.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Relay base URL (defaults to RELAY_BASE_URL env or http://localhost:10000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for HTTP responses and WebSocket handshakes.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("history")
def history_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        min=1,
        help="Number of readings to fetch (server caps at 1000).",
    ),
) -> None:
    """Show the most recent stored readings."""
    state = _get_state(ctx)
    readings = state.client.get_history(limit)
    render_history(readings)


@app.command("send")
def send_command(
    ctx: typer.Context,
    bpm: Optional[float] = typer.Option(None, "--bpm", help="Heart rate in beats per minute."),
    spo2: Optional[float] = typer.Option(None, "--spo2", help="Blood oxygen saturation in percent."),
    source: Optional[str] = typer.Option(None, "--source", help="Device tag (relay defaults to esp32)."),
    ts: Optional[str] = typer.Option(
        None,
        "--ts",
        help="Reading timestamp: ISO-8601 text or epoch milliseconds. Overrides --now.",
    ),
    now: bool = typer.Option(
        False,
        "--now",
        help="Stamp the reading with the local time instead of letting the relay do it.",
    ),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait until the relay rebroadcasts the reading back.",
    ),
) -> None:
    """Push a single reading over the relay socket."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {}
    if bpm is not None:
        payload["bpm"] = bpm
    if spo2 is not None:
        payload["spo2"] = spo2
    if source:
        payload["source"] = source
    if ts is not None:
        payload["ts"] = int(ts) if ts.isdigit() else ts
    elif now:
        payload["ts"] = datetime.now(timezone.utc).isoformat()

    typer.echo(f"Sending reading to {state.config.websocket_url} ...")
    echo = state.client.send_reading(payload, wait=wait)
    if wait and echo is not None:
        typer.secho("Relay echoed the reading.", fg=typer.colors.GREEN)
        render_frame(echo)
    else:
        typer.secho("Reading sent.", fg=typer.colors.GREEN)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    count: Optional[int] = typer.Option(
        None,
        "--count",
        "-c",
        min=1,
        help="Stop after this many frames (default: run until interrupted).",
    ),
) -> None:
    """Print frames as the relay broadcasts them."""
    state = _get_state(ctx)
    typer.echo(f"Watching {state.config.websocket_url} ...")
    for frame in state.client.stream(count):
        render_frame(frame)
