from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


_ENV_FILE_ENV = "RELAY_ENV_FILE"
_HOST_ENV = "HOST"
_PORT_ENV = "PORT"
_STORE_URL_ENV = "MONGODB_URI"
_DATABASE_ENV = "MONGODB_DATABASE"
_COLLECTION_ENV = "MONGODB_COLLECTION"
_STORE_TIMEOUT_ENV = "STORE_TIMEOUT_MS"
_PERSIST_WORKERS_ENV = "RELAY_PERSIST_WORKERS"
_PERSIST_QUEUE_ENV = "RELAY_PERSIST_QUEUE_LIMIT"
_SEND_TIMEOUT_ENV = "RELAY_SEND_TIMEOUT"
_MAX_FRAME_ENV = "RELAY_MAX_FRAME_BYTES"
_MAX_CONNECTIONS_ENV = "RELAY_MAX_CONNECTIONS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

WEBSOCKET_PATH = "/ws"


class ConfigurationError(RuntimeError):
    """Raised when the process cannot be started with the current environment."""


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    store_url: Optional[str]
    database_name: str
    collection_name: str
    store_timeout_ms: int
    persist_workers: int
    persist_queue_limit: int
    send_timeout: float
    max_frame_bytes: int
    max_connections: int
    log_level: str

    def require_store_url(self) -> str:
        if not self.store_url:
            raise ConfigurationError(
                f"{_STORE_URL_ENV} is not set; refusing to start without a record store."
            )
        return self.store_url


def _load_env_file() -> None:
    # Real environment variables always win over the dotenv file.
    env_file = os.getenv(_ENV_FILE_ENV, ".env")
    if env_file and Path(env_file).is_file():
        load_dotenv(env_file, override=False)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    _load_env_file()
    return Settings(
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_positive_int(_PORT_ENV, 10000),
        store_url=_read_optional_env(_STORE_URL_ENV),
        database_name=_read_str_env(_DATABASE_ENV, "telemetry"),
        collection_name=_read_str_env(_COLLECTION_ENV, "sensordatas"),
        store_timeout_ms=_read_positive_int(_STORE_TIMEOUT_ENV, 5000),
        persist_workers=_read_positive_int(_PERSIST_WORKERS_ENV, 4),
        persist_queue_limit=_read_positive_int(_PERSIST_QUEUE_ENV, 1000),
        send_timeout=_read_positive_float(_SEND_TIMEOUT_ENV, 5.0),
        max_frame_bytes=_read_positive_int(_MAX_FRAME_ENV, 64 * 1024),
        max_connections=_read_positive_int(_MAX_CONNECTIONS_ENV, 1000),
        log_level=_read_log_level("INFO"),
    )
