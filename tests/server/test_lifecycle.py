"""Tests for the Gateway lifecycle controller against a real listening socket."""

import io
import json
import socket
from typing import Any

import anyio
import httpx
import pytest

from context_gateway.config import GatewaySettings
from context_gateway.exceptions import LifecycleError, RegistrationError
from context_gateway.lifecycle import Gateway, LocalStreamState, NetworkState
from context_gateway.registry import CapabilityRegistry
from context_gateway.types import Implementation

pytestmark = pytest.mark.anyio

IMPLEMENTATION = Implementation(name="test-gateway", version="0.1.0")


def _settings() -> GatewaySettings:
    return GatewaySettings(_env_file=None, host="127.0.0.1", port=0, shutdown_timeout=2)  # type: ignore[call-arg]


def _make_registry() -> CapabilityRegistry:
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

    return registry


def _init_request() -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {
            "protocolVersion": "2025-11-25",
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0"},
        },
    }


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


async def test_start_serve_and_destroy():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.start()
        port = gateway.port
        assert port
        assert gateway.network_state is NetworkState.SERVING

        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            resp = await client.post("/mcp", json=_init_request())
            assert resp.status_code == 200
            session_id = resp.headers["mcp-session-id"]

            resp = await client.post(
                "/mcp",
                json={
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "tools/call",
                    "params": {"name": "add", "arguments": {"a": 2, "b": 3}},
                },
                headers={"mcp-session-id": session_id},
            )
            assert resp.json()["result"]["content"][0]["text"] == "5"

            resp = await client.get("/mcp")
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == -32000

        await gateway.destroy()
        assert gateway.network_state is NetworkState.STOPPED
        assert gateway.port is None
        assert len(gateway.sessions) == 0

    assert _port_is_free(port)


async def test_fresh_gateway_can_rebind_the_same_port():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as first:
        await first.start()
        port = first.port
        assert port is not None

    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as second:
        await second.start(port=port)
        assert second.port == port
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            resp = await client.post("/mcp", json=_init_request())
            assert resp.status_code == 200


async def test_destroy_is_idempotent():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.start()
        await gateway.destroy()
        await gateway.destroy()
        assert gateway.network_state is NetworkState.STOPPED


async def test_destroy_before_start():
    async with Gateway(IMPLEMENTATION, settings=_settings()) as gateway:
        await gateway.destroy()
        assert gateway.network_state is NetworkState.STOPPED


async def test_restart_on_the_same_port_after_destroy():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.start()
        port = gateway.port
        assert port is not None

        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            resp = await client.post("/mcp", json=_init_request())
            old_session_id = resp.headers["mcp-session-id"]

        await gateway.destroy()
        assert gateway.network_state is NetworkState.STOPPED

        await gateway.start(port=port)
        assert gateway.network_state is NetworkState.SERVING
        assert gateway.port == port
        assert len(gateway.sessions) == 0

        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            resp = await client.post("/mcp", json=_init_request())
            assert resp.status_code == 200
            session_id = resp.headers["mcp-session-id"]
            assert session_id != old_session_id

            resp = await client.post(
                "/mcp",
                json={
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "tools/call",
                    "params": {"name": "add", "arguments": {"a": 2, "b": 3}},
                },
                headers={"mcp-session-id": session_id},
            )
            assert resp.json()["result"]["content"][0]["text"] == "5"

            resp = await client.post(
                "/mcp",
                json={"jsonrpc": "2.0", "id": 3, "method": "ping"},
                headers={"mcp-session-id": old_session_id},
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == -32000

        await gateway.destroy()
        assert gateway.network_state is NetworkState.STOPPED

    assert _port_is_free(port)


async def test_start_after_destroy_before_start():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.destroy()
        await gateway.start()
        assert gateway.network_state is NetworkState.SERVING


async def test_failed_start_can_be_retried(monkeypatch: pytest.MonkeyPatch):
    from context_gateway import lifecycle

    real_create_app = lifecycle.create_app
    calls = 0

    def flaky_create_app(*args: Any, **kwargs: Any):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("app construction failed")
        return real_create_app(*args, **kwargs)

    monkeypatch.setattr(lifecycle, "create_app", flaky_create_app)

    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        with pytest.raises(RuntimeError, match="app construction failed"):
            await gateway.start()
        assert gateway.network_state is NetworkState.NOT_STARTED
        assert gateway.port is None

        await gateway.start()
        port = gateway.port
        assert port is not None
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            resp = await client.post("/mcp", json=_init_request())
            assert resp.status_code == 200


async def test_start_twice_fails():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.start()
        with pytest.raises(LifecycleError, match="serving"):
            await gateway.start()


async def test_start_outside_context_fails():
    gateway = Gateway(IMPLEMENTATION, _make_registry(), settings=_settings())
    with pytest.raises(LifecycleError):
        await gateway.start()


async def test_port_in_use_is_a_lifecycle_error():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
            with pytest.raises(LifecycleError, match="Cannot bind"):
                await gateway.start(port=port)
            assert gateway.network_state is NetworkState.NOT_STARTED


async def test_start_freezes_registry():
    registry = _make_registry()
    async with Gateway(IMPLEMENTATION, registry, settings=_settings()) as gateway:
        await gateway.start()
        with pytest.raises(RegistrationError):
            registry.register("tool", "late", "", None, lambda args: None)


async def test_local_stream_lifeline():
    stdin = io.StringIO(json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"}) + "\n")
    stdout = io.StringIO()

    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        transport = await gateway.connect_stdio(stdin=anyio.AsyncFile(stdin), stdout=anyio.AsyncFile(stdout))
        with anyio.fail_after(5):
            await gateway.wait_closed()

        assert transport.closed
        assert gateway.local_state is LocalStreamState.CLOSED
        with pytest.raises(LifecycleError):
            await gateway.connect_stdio(stdin=anyio.AsyncFile(io.StringIO()), stdout=anyio.AsyncFile(io.StringIO()))

    stdout.seek(0)
    assert json.loads(stdout.readline()) == {"jsonrpc": "2.0", "id": 1, "result": {}}


async def test_wait_closed_returns_after_destroy():
    async with Gateway(IMPLEMENTATION, _make_registry(), settings=_settings()) as gateway:
        await gateway.start()
        async with anyio.create_task_group() as tg:
            tg.start_soon(gateway.wait_closed)
            await gateway.destroy()
