"""Wire models for the Brain WebSocket protocol.

Outbound frames are ``{"command": <name>, ...params}``. Inbound frames are
``{"type": <discriminant>, ...data}``; the recognized discriminants map to the
models below. There is no request id on either side.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

COMMAND_QUERY = "query"
COMMAND_GET_SERVERS = "get_servers"
COMMAND_LIST_TOOLS = "list_tools"
COMMAND_CONNECT_SERVER = "connect_server"
COMMAND_DISCONNECT_SERVER = "disconnect_server"


class _Frame(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ServerInfo(_Frame):
    id: str
    status: str = "unknown"
    tools_count: int = 0


class ToolInfo(_Frame):
    name: str
    description: str = ""


def _servers_by_id(value: Any) -> Any:
    # Some runtimes send a list instead of the id-keyed map.
    if isinstance(value, list):
        return {
            str(item.get("id")): item
            for item in value
            if isinstance(item, dict) and item.get("id") is not None
        }
    return value


class ServerConnected(_Frame):
    type: Literal["server_connected"] = "server_connected"
    server: ServerInfo


class ServerDisconnected(_Frame):
    type: Literal["server_disconnected"] = "server_disconnected"
    server_id: str


class ToolsList(_Frame):
    type: Literal["tools_list"] = "tools_list"
    server_id: str
    tools: list[ToolInfo] = Field(default_factory=list)


class ServersList(_Frame):
    type: Literal["servers_list"] = "servers_list"
    servers: dict[str, ServerInfo] = Field(default_factory=dict)

    @field_validator("servers", mode="before")
    @classmethod
    def normalize_servers(cls, value: Any) -> Any:
        return _servers_by_id(value)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class QueryResponse(_Frame):
    type: Literal["query_response"] = "query_response"
    query: str = ""
    response: str = ""

    # Any payload completes a query; non-string replies are shown as text.
    @field_validator("query", "response", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class Thinking(_Frame):
    type: Literal["thinking"] = "thinking"
    message: str = ""

    @field_validator("message", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class Status(_Frame):
    type: Literal["status"] = "status"
    servers: dict[str, ServerInfo] | None = None

    @field_validator("servers", mode="before")
    @classmethod
    def normalize_servers(cls, value: Any) -> Any:
        return _servers_by_id(value)


class RemoteError(_Frame):
    type: Literal["error"] = "error"
    error: Any = None


FRAME_TYPES: dict[str, type[_Frame]] = {
    "server_connected": ServerConnected,
    "server_disconnected": ServerDisconnected,
    "tools_list": ToolsList,
    "servers_list": ServersList,
    "query_response": QueryResponse,
    "thinking": Thinking,
    "status": Status,
    "error": RemoteError,
}


@dataclass(frozen=True, slots=True)
class RawFrame:
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return str(self.payload.get("type"))


@dataclass(frozen=True, slots=True)
class ConnectionLost:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class ServerRecord:
    id: str
    status: str
    tools_count: int = 0

    @classmethod
    def from_info(cls, info: ServerInfo) -> ServerRecord:
        return cls(id=info.id, status=info.status, tools_count=info.tools_count)
