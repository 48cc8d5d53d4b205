import io
import json
from typing import Any

import anyio
import pytest

from context_gateway.context import ResponseSink
from context_gateway.exceptions import TransportError
from context_gateway.registry import CapabilityRegistry
from context_gateway.server import GatewayServer
from context_gateway.transport.stdio import LocalStreamTransport, wrap_stdio
from context_gateway.types import Implementation
from context_gateway.types.json_rpc import JSONRPCMessage, JSONRPCNotification, JSONRPCRequest


def _make_server() -> GatewayServer:
    registry = CapabilityRegistry()

    @registry.tool(
        "add",
        "Add two numbers",
        {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    )
    def add(args: dict[str, Any]) -> float:
        return args["a"] + args["b"]

    return GatewayServer(Implementation(name="test-gateway", version="0.1.0"), registry)


def _bind(transport: LocalStreamTransport, server: GatewayServer) -> None:
    async def on_message(sink: ResponseSink, message: JSONRPCMessage) -> None:
        await server.handle_message(sink, message)

    transport.bind(on_message)


async def _run_lines(lines: list[str]) -> list[dict[str, Any]]:
    stdin = io.StringIO("".join(line + "\n" for line in lines))
    stdout = io.StringIO()

    transport = LocalStreamTransport(stdin=anyio.AsyncFile(stdin), stdout=anyio.AsyncFile(stdout))
    _bind(transport, _make_server())
    async with anyio.create_task_group() as tg:
        await tg.start(transport.run)

    assert transport.closed
    stdout.seek(0)
    return [json.loads(line) for line in stdout.readlines()]


@pytest.mark.anyio
async def test_stdio_round_trip():
    requests = [
        JSONRPCRequest(
            id=1,
            method="initialize",
            params={
                "protocolVersion": "2025-11-25",
                "capabilities": {},
                "clientInfo": {"name": "local", "version": "1.0"},
            },
        ),
        JSONRPCNotification(method="notifications/initialized"),
        JSONRPCRequest(id=2, method="tools/call", params={"name": "add", "arguments": {"a": 2, "b": 3}}),
        JSONRPCRequest(id=3, method="ping"),
    ]

    responses = await _run_lines([r.model_dump_json(by_alias=True, exclude_none=True) for r in requests])

    # One line per request, in order; the notification produces nothing
    assert [response["id"] for response in responses] == [1, 2, 3]
    assert responses[0]["result"]["serverInfo"]["name"] == "test-gateway"
    assert responses[1]["result"]["content"] == [{"type": "text", "text": "5"}]
    assert responses[2]["result"] == {}


@pytest.mark.anyio
async def test_stdio_needs_no_handshake():
    responses = await _run_lines([json.dumps({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})])
    assert responses[0]["result"]["tools"][0]["name"] == "add"


@pytest.mark.anyio
async def test_stdio_malformed_lines():
    responses = await _run_lines(
        [
            "{this is not json",
            json.dumps({"hello": "world"}),
            "",
            json.dumps({"jsonrpc": "2.0", "id": 9, "method": "ping"}),
        ]
    )

    assert responses[0] == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}
    assert responses[1]["error"]["code"] == -32600
    # the stream survives bad input
    assert responses[2] == {"jsonrpc": "2.0", "id": 9, "result": {}}


@pytest.mark.anyio
async def test_stdio_undecodable_line_is_a_parse_error():
    stdin = io.BytesIO(b"\xff\xfe garbage\n" + json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"}).encode() + b"\n")
    stdout = io.StringIO()

    transport = LocalStreamTransport(stdin=wrap_stdio(stdin), stdout=anyio.AsyncFile(stdout))
    _bind(transport, _make_server())
    async with anyio.create_task_group() as tg:
        await tg.start(transport.run)

    stdout.seek(0)
    responses = [json.loads(line) for line in stdout.readlines()]
    assert responses[0]["error"]["code"] == -32700
    assert responses[1] == {"jsonrpc": "2.0", "id": 1, "result": {}}
    # the caller keeps ownership of the binary stream
    assert not stdin.closed


@pytest.mark.anyio
async def test_stdio_close_is_idempotent_and_notifies_once():
    closes: list[LocalStreamTransport] = []
    transport = LocalStreamTransport(stdin=anyio.AsyncFile(io.StringIO()), stdout=anyio.AsyncFile(io.StringIO()))

    async def on_message(sink: ResponseSink, message: JSONRPCMessage) -> None:
        pass

    transport.bind(on_message, closes.append)  # type: ignore[arg-type]

    await transport.close()
    await transport.close()

    assert closes == [transport]
    assert transport.closed_event.is_set()


@pytest.mark.anyio
async def test_stdio_bind_twice_fails():
    transport = LocalStreamTransport(stdin=anyio.AsyncFile(io.StringIO()), stdout=anyio.AsyncFile(io.StringIO()))
    _bind(transport, _make_server())
    with pytest.raises(TransportError):
        _bind(transport, _make_server())
