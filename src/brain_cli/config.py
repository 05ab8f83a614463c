import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from brain_cli.sessions.store import DEFAULT_SESSION_DIR
from brain_cli.transport.client import DEFAULT_MAX_MESSAGE_BYTES, DEFAULT_TIMEOUT_MS, DEFAULT_URL

SERVER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class ConfigError(Exception):
    pass


def get_optional_env(name: str, default: str) -> str:
    return os.environ.get(name) or default


def _int_env(name: str, default: int) -> int:
    raw = get_optional_env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = get_optional_env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def is_websocket_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("ws", "wss") and bool(parsed.netloc)


def is_valid_server_id(server_id: str) -> bool:
    return bool(SERVER_ID_PATTERN.match(server_id))


@dataclass
class BrainConfig:
    url: str = field(default_factory=lambda: get_optional_env("BRAIN_URL", DEFAULT_URL))
    connect_timeout_ms: int = field(
        default_factory=lambda: _int_env("BRAIN_CONNECT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)
    )
    query_timeout_s: float = field(
        default_factory=lambda: _float_env("BRAIN_QUERY_TIMEOUT_S", 30.0)
    )
    max_message_bytes: int = field(
        default_factory=lambda: _int_env("BRAIN_MAX_MESSAGE_BYTES", DEFAULT_MAX_MESSAGE_BYTES)
    )
    session_dir: Path = field(
        default_factory=lambda: Path(
            get_optional_env("BRAIN_SESSION_DIR", str(DEFAULT_SESSION_DIR))
        ).expanduser()
    )

    def validate(self) -> None:
        if not is_websocket_url(self.url):
            raise ConfigError(f"Invalid WebSocket URL: {self.url} (expected ws:// or wss://)")
        if self.connect_timeout_ms <= 0:
            raise ConfigError("Connection timeout must be positive")
        if self.query_timeout_s <= 0:
            raise ConfigError("Query timeout must be positive")
        if self.max_message_bytes <= 0:
            raise ConfigError("Maximum message size must be positive")
