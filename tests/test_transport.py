import asyncio
import json
import time

import pytest

from brain_cli.transport.client import (
    BrainClient,
    BrainConnectionError,
    ConnectionState,
    ConnectionTimeout,
    NotConnected,
    ParseError,
    TransportError,
    decode_frame,
)
from brain_cli.transport.frames import (
    FRAME_TYPES,
    ConnectionLost,
    QueryResponse,
    RawFrame,
    ServerConnected,
    ServerRecord,
    ServersList,
    Thinking,
    ToolsList,
)


def _collect(client: BrainClient, *event_types) -> list:
    seen = []
    for event_type in event_types:
        client.events.subscribe(event_type, seen.append)
    return seen


class TestDispatch:
    def test_frame_without_type_is_dropped(self):
        client = BrainClient()
        seen = _collect(client, RawFrame, *FRAME_TYPES.values())

        client.dispatch_frame(json.dumps({"response": "orphan"}))

        assert seen == []

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"', b"\xff\xfe", "[" * 100000])
    def test_malformed_frames_are_dropped(self, raw):
        client = BrainClient()
        seen = _collect(client, RawFrame, *FRAME_TYPES.values())

        client.dispatch_frame(raw)

        assert seen == []

    def test_recognized_frame_is_typed_and_raw(self):
        client = BrainClient()
        raw_frames = _collect(client, RawFrame)
        responses = _collect(client, QueryResponse)
        payload = {"type": "query_response", "query": "q", "response": "a", "extra": 1}

        client.dispatch_frame(json.dumps(payload))

        assert responses == [QueryResponse(query="q", response="a")]
        assert raw_frames == [RawFrame(payload=payload)]
        assert raw_frames[0].type == "query_response"

    @pytest.mark.parametrize(
        "response, text",
        [(None, ""), (42, "42"), ({"files": 3}, '{"files": 3}'), (["a", "b"], '["a", "b"]')],
    )
    def test_non_string_response_is_still_published(self, response, text):
        client = BrainClient()
        responses = _collect(client, QueryResponse)

        client.dispatch_frame(json.dumps({"type": "query_response", "query": None, "response": response}))

        assert responses == [QueryResponse(query="", response=text)]

    def test_non_string_thinking_message(self):
        client = BrainClient()
        seen = _collect(client, Thinking)

        client.dispatch_frame(json.dumps({"type": "thinking", "message": None}))

        assert seen == [Thinking(message="")]

    def test_deeply_nested_frame_does_not_stop_dispatch(self):
        client = BrainClient()
        seen = _collect(client, Thinking)

        client.dispatch_frame("[" * 100000)
        client.dispatch_frame(json.dumps({"type": "thinking", "message": "still here"}))

        assert seen == [Thinking(message="still here")]

    def test_unknown_type_only_reaches_raw_channel(self):
        client = BrainClient()
        raw_frames = _collect(client, RawFrame)
        typed = _collect(client, *FRAME_TYPES.values())

        client.dispatch_frame(json.dumps({"type": "heartbeat"}))

        assert len(raw_frames) == 1
        assert typed == []

    def test_invalid_typed_frame_is_not_published_as_typed(self):
        client = BrainClient()
        raw_frames = _collect(client, RawFrame)
        tools = _collect(client, ToolsList)

        client.dispatch_frame(json.dumps({"type": "tools_list", "tools": "nope"}))

        assert len(raw_frames) == 1
        assert tools == []

    def test_failing_subscriber_does_not_stop_dispatch(self):
        client = BrainClient()

        def explode(frame):
            raise RuntimeError("boom")

        client.events.subscribe(Thinking, explode)
        seen = _collect(client, Thinking)

        client.dispatch_frame(json.dumps({"type": "thinking", "message": "hmm"}))

        assert seen == [Thinking(message="hmm")]

    def test_unsubscribe(self):
        client = BrainClient()
        seen = []
        unsubscribe = client.events.subscribe(Thinking, seen.append)
        unsubscribe()
        unsubscribe()

        client.dispatch_frame(json.dumps({"type": "thinking"}))

        assert seen == []
        assert client.events.subscriber_count(Thinking) == 0

    def test_server_cache_mirrors_frames(self):
        client = BrainClient()

        client.dispatch_frame(json.dumps({
            "type": "servers_list",
            "servers": {
                "exa": {"id": "exa", "status": "connected", "tools_count": 3},
                "git": {"id": "git", "status": "error", "tools_count": 0},
            },
        }))
        assert set(client.servers) == {"exa", "git"}

        client.dispatch_frame(json.dumps({"type": "server_disconnected", "server_id": "git"}))
        client.dispatch_frame(json.dumps({
            "type": "server_connected",
            "server": {"id": "fs", "status": "connected", "tools_count": 7},
        }))

        assert client.servers == {
            "exa": ServerRecord(id="exa", status="connected", tools_count=3),
            "fs": ServerRecord(id="fs", status="connected", tools_count=7),
        }

    def test_servers_list_accepts_a_list(self):
        client = BrainClient()
        seen = _collect(client, ServersList)

        client.dispatch_frame(json.dumps({
            "type": "servers_list",
            "servers": [{"id": "exa", "status": "connected", "tools_count": 2}],
        }))

        assert list(seen[0].servers) == ["exa"]
        assert client.servers["exa"].tools_count == 2

    def test_decode_frame_errors(self):
        with pytest.raises(ParseError):
            decode_frame('{"no": "type"}')
        assert decode_frame('{"type": "status"}') == {"type": "status"}


class TestLifecycle:
    def test_send_before_connect_raises(self):
        client = BrainClient()

        with pytest.raises(NotConnected):
            asyncio.run(client.send_command("query", {"query": "hello"}))
        assert client.state == ConnectionState.IDLE

    def test_connect_times_out(self):
        async def stall(reader, writer):
            try:
                await asyncio.sleep(5)
            finally:
                writer.close()

        async def scenario():
            server = await asyncio.start_server(stall, "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            client = BrainClient()
            started = time.monotonic()
            try:
                with pytest.raises(ConnectionTimeout):
                    await client.connect(f"ws://127.0.0.1:{port}", 50)
                return client, time.monotonic() - started
            finally:
                server.close()

        client, elapsed = asyncio.run(scenario())
        assert elapsed < 1.0
        assert client.state == ConnectionState.FAILED

    def test_connect_refused(self, free_port):
        client = BrainClient()

        with pytest.raises(BrainConnectionError):
            asyncio.run(client.connect(f"ws://127.0.0.1:{free_port}", 2000))
        assert client.state == ConnectionState.FAILED

    def test_connect_rejects_non_websocket_url(self):
        client = BrainClient()

        with pytest.raises(BrainConnectionError):
            asyncio.run(client.connect("http://localhost:3789", 500))

    def test_client_connects_once(self, free_port):
        client = BrainClient()
        with pytest.raises(BrainConnectionError):
            asyncio.run(client.connect(f"ws://127.0.0.1:{free_port}", 500))

        with pytest.raises(TransportError):
            asyncio.run(client.connect(f"ws://127.0.0.1:{free_port}", 500))

    def test_disconnect_is_idempotent(self):
        client = BrainClient()

        asyncio.run(client.disconnect())
        asyncio.run(client.disconnect())

        assert client.state == ConnectionState.CLOSED

    def test_query_round_trip(self, brain_server):
        def replies(message):
            return [
                {"type": "thinking", "message": "working"},
                {"type": "query_response", "query": message["query"], "response": "42"},
            ]

        async def scenario():
            async with brain_server(replies) as brain:
                client = BrainClient()
                loop = asyncio.get_running_loop()
                answer = loop.create_future()
                client.events.subscribe(QueryResponse, lambda f: answer.done() or answer.set_result(f))
                thinking = _collect(client, Thinking)

                await client.connect(brain.url, 2000)
                assert client.connected
                await client.send_query("meaning of life")
                frame = await asyncio.wait_for(answer, 2)
                await client.disconnect()
                await client.disconnect()
                return client, frame, thinking, brain.received

        client, frame, thinking, received = asyncio.run(scenario())
        assert received == [{"command": "query", "query": "meaning of life"}]
        assert frame == QueryResponse(query="meaning of life", response="42")
        assert thinking == [Thinking(message="working")]
        assert client.state == ConnectionState.CLOSED

    def test_large_reply_is_accepted(self, brain_server):
        big = "x" * (2 * 1024 * 1024)

        def replies(message):
            return [{"type": "query_response", "query": message["query"], "response": big}]

        async def scenario():
            async with brain_server(replies) as brain:
                client = BrainClient()
                loop = asyncio.get_running_loop()
                answer = loop.create_future()
                client.events.subscribe(QueryResponse, lambda f: answer.done() or answer.set_result(f))
                await client.connect(brain.url, 2000)
                await client.send_query("analyze codebase")
                frame = await asyncio.wait_for(answer, 5)
                state = client.state
                await client.disconnect()
                return frame, state

        frame, state = asyncio.run(scenario())
        assert len(frame.response) == len(big)
        assert state == ConnectionState.CONNECTED

    def test_reply_above_configured_limit_closes_connection(self, brain_server):
        def replies(message):
            return [{"type": "query_response", "response": "x" * 4096}]

        async def scenario():
            async with brain_server(replies) as brain:
                client = BrainClient(max_message_bytes=1024)
                loop = asyncio.get_running_loop()
                lost = loop.create_future()
                client.events.subscribe(ConnectionLost, lambda e: lost.done() or lost.set_result(e))
                await client.connect(brain.url, 2000)
                await client.send_query("too much")
                await asyncio.wait_for(lost, 5)
                await client.disconnect()
                return client.state

        assert asyncio.run(scenario()) == ConnectionState.CLOSED

    def test_outbound_command_shapes(self, brain_server):
        async def scenario():
            async with brain_server() as brain:
                client = BrainClient()
                await client.connect(brain.url, 2000)
                await client.get_servers()
                await client.list_tools("exa")
                await client.connect_server("exa", {"command": "npx"})
                await client.disconnect_server("exa")
                await client.request_status()
                for _ in range(50):
                    if len(brain.received) == 5:
                        break
                    await asyncio.sleep(0.01)
                await client.disconnect()
                return brain.received

        assert asyncio.run(scenario()) == [
            {"command": "get_servers"},
            {"command": "list_tools", "server_id": "exa"},
            {"command": "connect_server", "server_id": "exa", "server_config": {"command": "npx"}},
            {"command": "disconnect_server", "server_id": "exa"},
            {"command": "get_servers"},
        ]

    def test_peer_close_publishes_connection_lost(self, brain_server):
        async def scenario():
            async with brain_server(close_after=1) as brain:
                client = BrainClient()
                loop = asyncio.get_running_loop()
                lost = loop.create_future()
                client.events.subscribe(ConnectionLost, lambda e: lost.done() or lost.set_result(e))

                await client.connect(brain.url, 2000)
                await client.send_query("bye")
                await asyncio.wait_for(lost, 2)
                state = client.state
                with pytest.raises(NotConnected):
                    await client.send_query("anyone there?")
                await client.disconnect()
                return state

        assert asyncio.run(scenario()) == ConnectionState.CLOSED

    def test_server_connected_frame_updates_cache_over_the_wire(self, brain_server):
        def replies(message):
            return [{
                "type": "server_connected",
                "server": {"id": message["server_id"], "status": "connected", "tools_count": 4},
            }]

        async def scenario():
            async with brain_server(replies) as brain:
                client = BrainClient()
                loop = asyncio.get_running_loop()
                connected = loop.create_future()
                client.events.subscribe(ServerConnected, lambda f: connected.done() or connected.set_result(f))
                await client.connect(brain.url, 2000)
                await client.connect_server("exa", "/etc/exa.json")
                await asyncio.wait_for(connected, 2)
                await client.disconnect()
                return client.servers

        assert asyncio.run(scenario()) == {
            "exa": ServerRecord(id="exa", status="connected", tools_count=4),
        }
