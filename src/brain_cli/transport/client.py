from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from brain_cli.transport.events import EventBus
from brain_cli.transport.frames import (
    COMMAND_CONNECT_SERVER,
    COMMAND_DISCONNECT_SERVER,
    COMMAND_GET_SERVERS,
    COMMAND_LIST_TOOLS,
    COMMAND_QUERY,
    FRAME_TYPES,
    ConnectionLost,
    RawFrame,
    ServerConnected,
    ServerDisconnected,
    ServerRecord,
    ServersList,
    Status,
)

logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://localhost:3789"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_MAX_MESSAGE_BYTES = 100 * 1024 * 1024


class TransportError(Exception):
    pass


class ConnectionTimeout(TransportError):
    pass


class BrainConnectionError(TransportError):
    pass


class NotConnected(TransportError):
    def __init__(self, message: str = "Not connected to Brain server"):
        super().__init__(message)


class ParseError(ValueError):
    pass


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise ParseError(f"invalid JSON: {e}") from e
    if not isinstance(message, dict):
        raise ParseError(f"expected an object, got {type(message).__name__}")
    if "type" not in message:
        raise ParseError("missing 'type'")
    return message


class BrainClient:
    """Single WebSocket connection to the Brain runtime.

    Commands are fire-and-forget: nothing on the wire ties a reply to the
    command that caused it, so two in-flight commands of the same kind cannot
    be told apart. Callers observe replies through ``events``.
    """

    def __init__(self, max_message_bytes: int | None = DEFAULT_MAX_MESSAGE_BYTES):
        self.state = ConnectionState.IDLE
        self.url: str | None = None
        self.events = EventBus()
        self.servers: dict[str, ServerRecord] = {}
        self.max_message_bytes = max_message_bytes
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def connect(self, url: str = DEFAULT_URL, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        if self.state != ConnectionState.IDLE:
            raise TransportError(f"Client already used (state: {self.state.value})")

        self.url = url
        self.state = ConnectionState.CONNECTING
        logger.debug(f"Connecting to {url} (timeout {timeout_ms}ms)")
        try:
            self._ws = await asyncio.wait_for(self._open(url), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            self.state = ConnectionState.FAILED
            raise ConnectionTimeout(f"Connection timeout after {timeout_ms}ms") from e
        except (OSError, WebSocketException) as e:
            self.state = ConnectionState.FAILED
            raise BrainConnectionError(f"Connection to {url} failed: {e}") from e

        self.state = ConnectionState.CONNECTED
        self._reader = asyncio.create_task(self._read_frames())
        logger.info(f"Connected to {url}")

    async def _open(self, url: str) -> ClientConnection:
        return await connect(url, open_timeout=None, max_size=self.max_message_bytes)

    async def _read_frames(self) -> None:
        reason = ""
        try:
            async for raw in self._ws:
                self.dispatch_frame(raw)
        except ConnectionClosed as e:
            reason = str(e)
        finally:
            if self.state == ConnectionState.CONNECTED:
                self.state = ConnectionState.CLOSED
                logger.info(f"Connection closed {reason}".strip())
                self.events.publish(ConnectionLost(reason=reason))

    def dispatch_frame(self, raw: str | bytes) -> None:
        try:
            message = decode_frame(raw)
        except ParseError as e:
            logger.debug(f"Dropping malformed frame: {e}")
            return

        self.events.publish(RawFrame(payload=message))

        frame_type = message["type"]
        model = FRAME_TYPES.get(frame_type)
        if model is None:
            logger.info(f"Unknown message type: {frame_type}")
            return

        try:
            frame = model.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Invalid {frame_type} frame: {e.error_count()} error(s)")
            return

        self._update_servers(frame)
        self.events.publish(frame)

    def _update_servers(self, frame: object) -> None:
        if isinstance(frame, ServerConnected):
            self.servers[frame.server.id] = ServerRecord.from_info(frame.server)
        elif isinstance(frame, ServerDisconnected):
            self.servers.pop(frame.server_id, None)
        elif isinstance(frame, ServersList):
            self.servers = {
                info.id: ServerRecord.from_info(info) for info in frame.servers.values()
            }
        elif isinstance(frame, Status) and frame.servers is not None:
            self.servers = {
                info.id: ServerRecord.from_info(info) for info in frame.servers.values()
            }

    async def send_command(self, command: str, params: dict[str, Any] | None = None) -> None:
        if self.state != ConnectionState.CONNECTED or self._ws is None:
            raise NotConnected()

        message = {"command": command, **(params or {})}
        try:
            await self._ws.send(json.dumps(message))
        except ConnectionClosed as e:
            raise BrainConnectionError(f"Send failed: {e}") from e
        logger.debug(f"Sent {command}")

    async def send_query(self, query: str) -> None:
        await self.send_command(COMMAND_QUERY, {"query": query})

    async def get_servers(self) -> None:
        await self.send_command(COMMAND_GET_SERVERS)

    async def request_status(self) -> None:
        await self.get_servers()

    async def list_tools(self, server_id: str) -> None:
        await self.send_command(COMMAND_LIST_TOOLS, {"server_id": server_id})

    async def connect_server(self, server_id: str, server_config: Any) -> None:
        await self.send_command(
            COMMAND_CONNECT_SERVER,
            {"server_id": server_id, "server_config": server_config},
        )

    async def disconnect_server(self, server_id: str) -> None:
        await self.send_command(COMMAND_DISCONNECT_SERVER, {"server_id": server_id})

    async def disconnect(self) -> None:
        if self.state != ConnectionState.FAILED:
            self.state = ConnectionState.CLOSED

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error while closing connection: {e}")

        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
