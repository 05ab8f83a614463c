from __future__ import annotations

import sys
from datetime import datetime
from typing import TextIO

from brain_cli.sessions.schema import Entry, SessionSummary
from brain_cli.transport.client import BrainClient
from brain_cli.transport.frames import (
    ConnectionLost,
    QueryResponse,
    RemoteError,
    ServerConnected,
    ServerDisconnected,
    ServerInfo,
    ServersList,
    Status,
    Thinking,
    ToolsList,
)

RULE = "=" * 50


def _local_time(timestamp: str, fmt: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).astimezone().strftime(fmt)
    except (TypeError, ValueError):
        return timestamp or "?"


class ConsoleRenderer:
    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout

    def print(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    def attach(self, client: BrainClient) -> None:
        events = client.events
        events.subscribe(ServerConnected, self.on_server_connected)
        events.subscribe(ServerDisconnected, self.on_server_disconnected)
        events.subscribe(ToolsList, self.on_tools_list)
        events.subscribe(ServersList, self.on_servers_list)
        events.subscribe(QueryResponse, self.on_query_response)
        events.subscribe(Thinking, self.on_thinking)
        events.subscribe(Status, self.on_status)
        events.subscribe(RemoteError, self.on_error)
        events.subscribe(ConnectionLost, self.on_connection_lost)

    def on_server_connected(self, frame: ServerConnected) -> None:
        server = frame.server
        self.print(f"✅ Server connected: {server.id}")
        self.print(f"   Status: {server.status}, Tools: {server.tools_count}")

    def on_server_disconnected(self, frame: ServerDisconnected) -> None:
        self.print(f"⚠️  Server disconnected: {frame.server_id}")

    def on_tools_list(self, frame: ToolsList) -> None:
        self.print(f"\nTools available on server {frame.server_id}:\n")
        if not frame.tools:
            self.print("No tools available")
            return
        for tool in frame.tools:
            self.print(f"  • {tool.name}")
            if tool.description and tool.description != "No description":
                self.print(f"    {tool.description}")
        self.print()

    def _print_servers(self, servers: dict[str, ServerInfo]) -> None:
        for server in servers.values():
            mark = "✓" if server.status == "connected" else "✗"
            self.print(f"  {mark} {server.id} - {server.tools_count} tools")

    def on_servers_list(self, frame: ServersList) -> None:
        self.print("\nConnected MCP Servers:\n")
        if not frame.servers:
            self.print("No servers connected")
            return
        self._print_servers(frame.servers)
        self.print()

    def on_query_response(self, frame: QueryResponse) -> None:
        self.print(f"\n{frame.response}\n")

    def on_thinking(self, frame: Thinking) -> None:
        self.print(f"💭 {frame.message or 'Thinking...'}")

    def on_status(self, frame: Status) -> None:
        self.print("\nBrain System Status:\n")
        if frame.servers is not None:
            if frame.servers:
                self.print("Connected MCP Servers:")
                self._print_servers(frame.servers)
            else:
                self.print("No MCP servers connected")
        self.print()

    def on_error(self, frame: RemoteError) -> None:
        self.print(f"❌ Error: {frame.error}")

    def on_connection_lost(self, event: ConnectionLost) -> None:
        self.print("⚠️  Connection closed")

    def history(self, entries: list[Entry]) -> None:
        if not entries:
            self.print("No conversation history in this session")
            return
        self.print("\nConversation History:")
        self.print(RULE)
        for entry in entries:
            when = _local_time(entry.timestamp, "%H:%M:%S")
            speaker = "Brain:" if entry.type == "response" else "You:"
            self.print(f"\n{when} {speaker}")
            self.print(entry.content)
        self.print(f"\n{RULE}")

    def sessions(self, summaries: list[SessionSummary], active_id: str | None) -> None:
        if not summaries:
            self.print("No previous sessions found")
            return
        self.print("\nRecent Sessions:")
        self.print(RULE)
        for summary in summaries:
            created = _local_time(summary.created or "", "%Y-%m-%d %H:%M:%S")
            marker = " (active)" if summary.id == active_id else ""
            self.print(f"{summary.id[:8]}: {created} ({summary.entry_count} messages){marker}")
        self.print(f"\n{RULE}")
        self.print("To continue a session: brain -r <session_id>")
