from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from dotenv import load_dotenv

from brain_cli.config import BrainConfig, ConfigError, is_valid_server_id
from brain_cli.render import ConsoleRenderer
from brain_cli.runtime.oneshot import run_once
from brain_cli.runtime.repl import BrainREPL
from brain_cli.runtime.runtime import BrainRuntime, parse_server_config
from brain_cli.sessions.store import SessionStore
from brain_cli.transport.client import BrainClient, TransportError
from brain_cli.transport.frames import (
    QueryResponse,
    ServerConnected,
    ServerDisconnected,
    ServersList,
    Status,
    ToolsList,
)

logger = logging.getLogger(__name__)

SUBCOMMANDS = {"connect", "interactive", "i", "server", "tools", "query", "status"}


def main() -> int:
    load_dotenv()
    return _main(sys.argv[1:])


def _package_version() -> str:
    try:
        return version("brain-cli")
    except PackageNotFoundError:
        return "0.0.0"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; carries ``session_id`` when a record was logged with it."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        session_id = getattr(record, "session_id", None)
        if session_id:
            payload["session_id"] = session_id
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(verbose: bool = False, log_format: str = "text") -> None:
    level = logging.DEBUG if verbose else logging.WARNING

    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler])
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _connection_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-u", "--url", default=None, help="WebSocket server URL (default: $BRAIN_URL or ws://localhost:3789)")
    common.add_argument("-t", "--timeout", type=int, default=None, help="Connection timeout in milliseconds")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument("--log-format", default="text", choices=["text", "json"])
    return common


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brain",
        description="CLI for interacting with the Brain multi-agent system",
        parents=[_connection_options()],
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    parser.add_argument("-p", "--print", action="store_true", help="Print mode: execute query and exit")
    parser.add_argument("-c", "--continue", dest="continue_last", action="store_true", help="Continue last conversation")
    parser.add_argument("-r", "--resume", metavar="SESSION_ID", default=None, help="Resume specific session")
    parser.add_argument("query", nargs="*", help="Query to send to Brain")
    return parser


def _build_command_parser() -> argparse.ArgumentParser:
    common = _connection_options()
    parser = argparse.ArgumentParser(prog="brain", description="Brain CLI commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("connect", parents=[common], help="Check the connection to the Brain server")
    subparsers.add_parser("interactive", aliases=["i"], parents=[common], help="Start interactive REPL mode")

    server = subparsers.add_parser("server", help="Manage MCP servers")
    server_sub = server.add_subparsers(dest="server_cmd", required=True)
    server_connect = server_sub.add_parser("connect", parents=[common], help="Connect to an MCP server")
    server_connect.add_argument("-i", "--id", required=True, help="Server ID")
    server_connect.add_argument("-c", "--config", required=True, help="Server config (path, URL or JSON)")
    server_sub.add_parser("list", parents=[common], help="List all connected servers")
    server_disconnect = server_sub.add_parser("disconnect", parents=[common], help="Disconnect an MCP server")
    server_disconnect.add_argument("-i", "--id", required=True, help="Server ID")

    tools = subparsers.add_parser("tools", parents=[common], help="List tools from a specific server")
    tools.add_argument("-i", "--id", required=True, help="Server ID")

    query = subparsers.add_parser("query", parents=[common], help="Send a query to the Brain")
    query.add_argument("text", nargs="+", help="Query to send")

    subparsers.add_parser("status", parents=[common], help="Show Brain system status")
    return parser


def _load_config(args: argparse.Namespace) -> BrainConfig:
    config = BrainConfig()
    if args.url:
        config.url = args.url
    if args.timeout is not None:
        config.connect_timeout_ms = args.timeout
    config.validate()
    return config


def _run(coro) -> int:
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 0


def _main(argv: list[str]) -> int:
    if argv and argv[0] in SUBCOMMANDS:
        args = _build_command_parser().parse_args(argv)
    else:
        args = _build_parser().parse_args(argv)

    setup_logging(args.verbose, args.log_format)

    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    cmd = getattr(args, "command", None)
    if cmd is not None:
        return _cmd_legacy(cmd, args, config)

    query = " ".join(args.query).strip()
    if args.print and not query:
        print("Error: a query is required in print mode", file=sys.stderr)
        return 2
    if args.print or (query and not (args.continue_last or args.resume)):
        return _run(_print_query(config, query))

    return _run(
        _repl(
            config,
            resume_id=args.resume,
            continue_last=bool(args.continue_last),
            initial_message=query or None,
        )
    )


async def _repl(
    config: BrainConfig,
    *,
    resume_id: str | None = None,
    continue_last: bool = False,
    initial_message: str | None = None,
) -> int:
    client = BrainClient(max_message_bytes=config.max_message_bytes)
    runtime = BrainRuntime(client, SessionStore(config.session_dir))

    try:
        await client.connect(config.url, config.connect_timeout_ms)
    except TransportError as e:
        print(f"Failed to connect: {e}", file=sys.stderr)
        return 1

    runtime.start_session(resume_id=resume_id, continue_last=continue_last)
    runtime.renderer.print(f"🧠 Connected to Brain server at {config.url}")
    runtime.renderer.print("Type 'help' for commands")
    runtime.renderer.print()

    try:
        return await BrainREPL(runtime).run(initial_message=initial_message)
    except Exception as e:
        logger.exception("Fatal error in REPL")
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        return 1


async def _one_shot(config: BrainConfig, send, expect: tuple[type, ...]) -> int:
    client = BrainClient(max_message_bytes=config.max_message_bytes)
    renderer = ConsoleRenderer()
    renderer.attach(client)
    return await run_once(
        client,
        url=config.url,
        timeout_ms=config.connect_timeout_ms,
        send=send,
        expect=expect,
        reply_timeout_s=config.query_timeout_s,
        renderer=renderer,
    )


async def _print_query(config: BrainConfig, query: str) -> int:
    print(f"Query: {query}")
    return await _one_shot(config, lambda c: c.send_query(query), (QueryResponse,))


async def _check_connection(config: BrainConfig) -> int:
    client = BrainClient(max_message_bytes=config.max_message_bytes)
    try:
        await client.connect(config.url, config.connect_timeout_ms)
    except TransportError as e:
        print(f"Connection failed: {e}", file=sys.stderr)
        return 1
    finally:
        await client.disconnect()
    print(f"✅ Connected to Brain server at {config.url}")
    return 0


def _require_server_id(server_id: str) -> bool:
    if is_valid_server_id(server_id):
        return True
    print(f"Error: invalid server id {server_id!r} (letters, digits, '_' and '-' only)", file=sys.stderr)
    return False


def _cmd_legacy(cmd: str, args: argparse.Namespace, config: BrainConfig) -> int:
    if cmd == "connect":
        return _run(_check_connection(config))
    if cmd in ("interactive", "i"):
        return _run(_repl(config))
    if cmd == "query":
        return _run(_print_query(config, " ".join(args.text)))
    if cmd == "status":
        return _run(_one_shot(config, lambda c: c.request_status(), (ServersList, Status)))
    if cmd == "tools":
        if not _require_server_id(args.id):
            return 2
        return _run(_one_shot(config, lambda c: c.list_tools(args.id), (ToolsList,)))
    if cmd == "server":
        if args.server_cmd == "list":
            return _run(_one_shot(config, lambda c: c.get_servers(), (ServersList,)))
        if not _require_server_id(args.id):
            return 2
        if args.server_cmd == "connect":
            server_config = parse_server_config(args.config)
            return _run(
                _one_shot(config, lambda c: c.connect_server(args.id, server_config), (ServerConnected,))
            )
        if args.server_cmd == "disconnect":
            return _run(_one_shot(config, lambda c: c.disconnect_server(args.id), (ServerDisconnected,)))

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
