import asyncio
import json
import socket
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
from websockets.asyncio.server import serve

from brain_cli.sessions.store import SessionStore
from brain_cli.transport.client import BrainClient, ConnectionState, NotConnected


@dataclass
class FakeBrain:
    url: str
    received: list[dict[str, Any]] = field(default_factory=list)


class FakeBrainServer:
    """Local WebSocket stand-in for the Brain runtime.

    ``replies`` maps each received command to the frames sent back.
    """

    def __init__(self, replies: Callable[[dict], list] | None = None, close_after: int | None = None):
        self.replies = replies or (lambda message: [])
        self.close_after = close_after
        self._serve = None
        self.brain: FakeBrain | None = None

    async def _handler(self, ws):
        async for raw in ws:
            message = json.loads(raw)
            self.brain.received.append(message)
            for reply in self.replies(message):
                await ws.send(reply if isinstance(reply, str) else json.dumps(reply))
            if self.close_after is not None and len(self.brain.received) >= self.close_after:
                await ws.close()
                return

    async def __aenter__(self) -> FakeBrain:
        self._serve = serve(self._handler, "127.0.0.1", 0)
        server = await self._serve.__aenter__()
        port = list(server.sockets)[0].getsockname()[1]
        self.brain = FakeBrain(url=f"ws://127.0.0.1:{port}")
        return self.brain

    async def __aexit__(self, *exc_info):
        await self._serve.__aexit__(*exc_info)


class RecordingClient(BrainClient):
    """BrainClient that records outbound commands instead of writing them."""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.state = ConnectionState.CONNECTED
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    async def send_command(self, command, params=None):
        if self.fail:
            raise NotConnected()
        self.sent.append({"command": command, **(params or {})})


@pytest.fixture
def brain_server():
    return FakeBrainServer


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def failing_client():
    return RecordingClient(fail=True)


@pytest.fixture
def free_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def scripted_input():
    def build(lines):
        remaining = list(lines)

        async def read_line(prompt: str) -> str:
            await asyncio.sleep(0)
            if not remaining:
                raise EOFError
            item = remaining.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item

        return read_line

    return build
