from __future__ import annotations

import json
from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def _fmt(value: Any) -> str:
    return "-" if value is None else str(value)


def format_reading(reading: Dict[str, Any]) -> str:
    return (
        f"{_fmt(reading.get('ts'))}  source={_fmt(reading.get('source'))}"
        f"  bpm={_fmt(reading.get('bpm'))}  spo2={_fmt(reading.get('spo2'))}"
    )


def render_history(readings: Iterable[Dict[str, Any]]) -> None:
    items = list(readings)
    echo_heading(f"Recent readings ({len(items)})")
    if not items:
        typer.echo("No readings stored yet.")
        return
    for reading in items:
        typer.echo(f"  - {format_reading(reading)}")


def render_frame(frame: str) -> None:
    try:
        payload = json.loads(frame)
    except json.JSONDecodeError:
        typer.echo(frame)
        return
    if isinstance(payload, dict):
        typer.echo(format_reading(payload))
    else:
        typer.echo(frame)
