from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.history_limits: List[Optional[int]] = []
        self.sent: List[tuple[Dict[str, Any], bool]] = []
        self.history_payload: List[Dict[str, Any]] = [
            {"bpm": 72.0, "spo2": 98.0, "ts": "2024-01-01T00:00:01Z", "source": "esp32"},
            {"bpm": 70.0, "spo2": None, "ts": "2024-01-01T00:00:00Z", "source": "wrist"},
        ]
        self.frames = ['{"bpm": 80, "source": "esp32"}', "raw text frame"]
        self.closed = False

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        self.history_limits.append(limit)
        return self.history_payload

    def send_reading(self, payload: Dict[str, Any], wait: bool = False) -> Optional[str]:
        self.sent.append((payload, wait))
        return json.dumps(payload) if wait else None

    def stream(self, count: Optional[int] = None) -> Iterator[str]:
        yield from self.frames[:count]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_history_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["history", "--limit", "2"])

    assert result.exit_code == 0
    assert "Recent readings (2)" in result.stdout
    assert "source=wrist" in result.stdout
    assert stub.history_limits == [2]
    assert stub.closed is True


def test_history_command_with_empty_store(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.history_payload = []
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0
    assert "No readings stored yet." in result.stdout
    assert stub.history_limits == [None]


def test_send_command_builds_payload(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--bpm", "72", "--source", "bench"])

    assert result.exit_code == 0
    assert "Reading sent." in result.stdout
    assert stub.sent == [({"bpm": 72.0, "source": "bench"}, False)]


def test_send_command_waits_for_echo(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--spo2", "96", "--now", "--wait"])

    assert result.exit_code == 0
    assert "Relay echoed the reading." in result.stdout
    [(payload, wait)] = stub.sent
    assert wait is True
    assert payload["spo2"] == 96.0
    assert "ts" in payload


@pytest.mark.parametrize(
    "ts, expected",
    [("1704067200000", 1_704_067_200_000), ("2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z")],
)
def test_send_command_passes_explicit_timestamp(monkeypatch, runner: CliRunner, ts, expected) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--bpm", "65", "--ts", ts, "--now"])

    assert result.exit_code == 0
    assert stub.sent == [({"bpm": 65.0, "ts": expected}, False)]


def test_watch_command_prints_frames(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["watch", "--count", "2"])

    assert result.exit_code == 0
    assert "bpm=80" in result.stdout
    assert "raw text frame" in result.stdout


def test_base_url_option_reaches_client(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "https://relay.example.com/", "history"])

    assert result.exit_code == 0
    assert stub.config.base_url == "https://relay.example.com"
    assert stub.config.websocket_url == "wss://relay.example.com/ws"


def test_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("RELAY_BASE_URL", "http://10.0.0.5:10000")
    monkeypatch.setenv("RELAY_CLI_TIMEOUT", "2.5")

    config = load_config()

    assert config.websocket_url == "ws://10.0.0.5:10000/ws"
    assert config.timeout == 2.5
