"""Connect, send exactly one command, wait for one reply, disconnect.

Completion is decided by the first inbound frame of an expected type. With no
correlation id on the wire this is only sound while a single command is in
flight, so the runner is single-use by construction.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from brain_cli.render import ConsoleRenderer
from brain_cli.transport.client import BrainClient, TransportError
from brain_cli.transport.frames import ConnectionLost, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_REPLY_TIMEOUT_S = 30.0


async def run_once(
    client: BrainClient,
    *,
    url: str,
    timeout_ms: int,
    send: Callable[[BrainClient], Awaitable[None]],
    expect: tuple[type, ...],
    reply_timeout_s: float = DEFAULT_REPLY_TIMEOUT_S,
    renderer: ConsoleRenderer | None = None,
) -> int:
    renderer = renderer or ConsoleRenderer()
    loop = asyncio.get_running_loop()
    reply: asyncio.Future[object] = loop.create_future()

    def on_frame(frame: object) -> None:
        if not reply.done():
            reply.set_result(frame)

    unsubscribers = [
        client.events.subscribe(event_type, on_frame)
        for event_type in (*expect, RemoteError, ConnectionLost)
    ]
    try:
        await client.connect(url, timeout_ms)
        await send(client)
        frame = await asyncio.wait_for(reply, timeout=reply_timeout_s)
    except TransportError as e:
        logger.info(f"One-shot command failed: {e}")
        renderer.print(f"❌ {e}")
        return 1
    except asyncio.TimeoutError:
        renderer.print("❌ Query timeout")
        return 1
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        await client.disconnect()

    if isinstance(frame, (RemoteError, ConnectionLost)):
        return 1
    return 0
