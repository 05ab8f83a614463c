from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable

from brain_cli.runtime.builtins import BuiltinCommands
from brain_cli.runtime.router import InputRouter
from brain_cli.runtime.runtime import BrainRuntime
from brain_cli.transport.client import TransportError

logger = logging.getLogger(__name__)

LineReader = Callable[[str], Awaitable[str]]


async def read_stdin_line(prompt: str) -> str:
    """Read one line without blocking the event loop.

    ``input()`` runs on a daemon thread so inbound frames keep rendering while
    the user types, and a pending read never holds up interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def deliver(line: str | None, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line)

    def worker() -> None:
        try:
            line = input(prompt)
        except Exception as e:
            result = (None, e)
        else:
            result = (line, None)
        try:
            loop.call_soon_threadsafe(deliver, *result)
        except RuntimeError:
            # loop already closed
            pass

    threading.Thread(target=worker, name="brain-stdin", daemon=True).start()
    return await future


class BrainREPL:
    def __init__(self, runtime: BrainRuntime, read_line: LineReader | None = None):
        self.runtime = runtime
        self.builtins = BuiltinCommands(runtime)
        self.router = InputRouter(self.builtins, runtime.parser)
        self.read_line = read_line or read_stdin_line

    async def run(self, initial_message: str | None = None) -> int:
        try:
            if initial_message and not await self.process_input(initial_message.strip()):
                return 0

            while True:
                try:
                    user_input = (await self.read_line("> ")).strip()
                except EOFError:
                    break
                except (KeyboardInterrupt, asyncio.CancelledError):
                    self.runtime.renderer.print("\n\n⚠️  Interrupted")
                    break

                if not user_input:
                    continue

                if not await self.process_input(user_input):
                    break
        finally:
            await self.runtime.shutdown()
        return 0

    async def process_input(self, user_input: str) -> bool:
        self.runtime.record("user", user_input)
        route = self.router.route(user_input)
        try:
            if route.kind == "builtin":
                return await self.builtins.handle(route.name, route.args)
            await self.runtime.dispatch(route.command)
        except TransportError as e:
            logger.info(f"{route.name} failed: {e}", extra=self.runtime.log_context)
            self.runtime.renderer.print(f"❌ {route.name} failed: {e}")
        return True
