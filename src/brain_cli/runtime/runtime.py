from __future__ import annotations

import json
import logging
from dataclasses import fields
from typing import Any

from brain_cli.intents.commands import (
    Command,
    ConnectServer,
    EditFile,
    Family,
    GitAdd,
    ListServers,
    ListTools,
    Query,
    ReadFile,
    Unknown,
    WriteFile,
)
from brain_cli.intents.parser import IntentParser, is_development_command
from brain_cli.render import ConsoleRenderer
from brain_cli.sessions.schema import Entry, EntryType
from brain_cli.sessions.store import SessionStore
from brain_cli.transport.client import BrainClient
from brain_cli.transport.frames import QueryResponse

logger = logging.getLogger(__name__)

OPERATION_SERVERS = {
    Family.FILE: "filesystem",
    Family.GIT: "git",
    Family.ANALYSIS: "codebase",
}

# Field names the remote runtime expects where they differ from ours.
_WIRE_NAMES: dict[type, dict[str, str]] = {
    ReadFile: {"file_path": "path"},
    WriteFile: {"file_path": "path"},
    EditFile: {"file_path": "path"},
    GitAdd: {"files": "file_paths"},
}


def operation_params(command: Command) -> dict[str, Any]:
    renames = _WIRE_NAMES.get(type(command), {})
    params: dict[str, Any] = {}
    for f in fields(command):
        value = getattr(command, f.name)
        if value is None:
            continue
        if isinstance(value, tuple):
            value = list(value)
        params[renames.get(f.name, f.name)] = value
    return params


def operation_instruction(command: Command) -> str:
    server = OPERATION_SERVERS[command.family]
    params = json.dumps(operation_params(command), separators=(",", ":"), ensure_ascii=False)
    return f"Use the {server} server to perform: {command.kind} with parameters: {params}"


def development_instruction(text: str) -> str:
    return f"As a development assistant, help with: {text}"


def parse_server_config(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class BrainRuntime:
    def __init__(
        self,
        client: BrainClient,
        store: SessionStore,
        renderer: ConsoleRenderer | None = None,
        parser: IntentParser | None = None,
    ):
        self.client = client
        self.store = store
        self.renderer = renderer or ConsoleRenderer()
        self.parser = parser or IntentParser()
        self.session_id: str | None = None

        self.client.events.subscribe(QueryResponse, self.on_query_response)
        self.renderer.attach(client)

    def start_session(self, resume_id: str | None = None, continue_last: bool = False) -> str:
        session_id = None
        if resume_id:
            if self.store.exists(resume_id):
                session_id = resume_id
            else:
                self.renderer.print(f"⚠️  Session {resume_id} not found, starting new session")
        elif continue_last:
            session_id = self.store.most_recent()
            if session_id is None:
                self.renderer.print("No previous session found, starting new session")

        if session_id is None:
            self.session_id = self.store.create()
            logger.info(f"Started session {self.session_id}", extra=self.log_context)
            return self.session_id

        self.session_id = session_id
        previous = len(self.store.history(session_id))
        if previous:
            self.renderer.print(
                f"Continuing session {session_id[:8]}... ({previous} previous messages)"
            )
        return session_id

    @property
    def log_context(self) -> dict[str, Any]:
        return {"session_id": self.session_id}

    def record(self, entry_type: EntryType, content: str) -> Entry | None:
        if self.session_id is None:
            return None
        return self.store.append(self.session_id, entry_type, content)

    def history(self) -> list[Entry]:
        if self.session_id is None:
            return []
        return self.store.history(self.session_id)

    def on_query_response(self, frame: QueryResponse) -> None:
        logger.debug(f"Response received ({len(frame.response)} chars)", extra=self.log_context)
        self.record("response", frame.response)

    async def forward_query(self, query: str) -> None:
        self.record("query", query)
        await self.client.send_query(query)

    async def dispatch(self, command: Command) -> None:
        if command.family in OPERATION_SERVERS:
            await self.forward_query(operation_instruction(command))
        elif isinstance(command, ConnectServer):
            logger.info(f"Requesting connection to server {command.server_id}", extra=self.log_context)
            await self.client.connect_server(command.server_id, parse_server_config(command.config))
        elif isinstance(command, ListServers):
            await self.client.get_servers()
        elif isinstance(command, ListTools):
            await self.client.list_tools(command.server_id)
        elif isinstance(command, Query):
            await self.forward_query(command.query)
        elif isinstance(command, Unknown):
            text = command.text
            if is_development_command(text):
                text = development_instruction(text)
            await self.forward_query(text)
        else:
            raise TypeError(f"Unhandled command: {command!r}")

    def summary_line(self) -> str | None:
        entries = self.history()
        if not entries:
            return None
        return f"Session {self.session_id[:8]} saved ({len(entries)} messages)"

    async def shutdown(self) -> None:
        try:
            summary = self.summary_line()
            if summary:
                self.renderer.print(summary)
            self.renderer.print("👋 Goodbye!")
        finally:
            await self.client.disconnect()
