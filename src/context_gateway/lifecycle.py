"""Lifecycle controller: starts and stops the network listener and the local stream as a unit.

Usage:
    async with Gateway(Implementation(name="gateway", version="1.0.0"), registry) as gateway:
        await gateway.start(port=3000)
        await gateway.connect_stdio()
        await gateway.wait_closed()

The two lifelines are independent:

- network:      not-started -> start() -> serving -> destroy() -> stopped -> start() -> serving ...
- local stream: unconnected -> connect_stdio() -> connected -> close -> closed

A stopped gateway may be started again, with a fresh session manager, on the
same port.
"""

from __future__ import annotations

import enum
import logging
import socket
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from types import TracebackType
from typing import Any

import anyio
import uvicorn
from anyio.abc import TaskGroup, TaskStatus

from context_gateway.config import GatewaySettings
from context_gateway.context import ResponseSink
from context_gateway.exceptions import LifecycleError
from context_gateway.registry import CapabilityRegistry
from context_gateway.router import RequestRouter, create_app
from context_gateway.server import GatewayServer
from context_gateway.session_manager import SessionManager
from context_gateway.transport.base import Transport
from context_gateway.transport.stdio import LocalStreamTransport
from context_gateway.types.common import Implementation
from context_gateway.types.json_rpc import JSONRPCMessage

logger = logging.getLogger(__name__)


class NetworkState(enum.Enum):
    NOT_STARTED = "not-started"
    SERVING = "serving"
    STOPPED = "stopped"


class LocalStreamState(enum.Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class Gateway:
    """Owns the session manager, the HTTP listener and the local stream transport.

    Must be entered as an async context manager; leaving the context destroys
    the gateway. ``start``, ``destroy`` and context exit are expected to run in
    the task that entered the context.
    """

    def __init__(
        self,
        implementation: Implementation,
        registry: CapabilityRegistry | None = None,
        settings: GatewaySettings | None = None,
        *,
        instructions: str | None = None,
    ) -> None:
        self.implementation = implementation
        self.registry = registry or CapabilityRegistry()
        self.settings = settings or GatewaySettings()
        self.server = GatewayServer(implementation, self.registry, instructions=instructions)
        self.sessions = SessionManager(self.server)

        self.network_state = NetworkState.NOT_STARTED
        self.local_state = LocalStreamState.UNCONNECTED

        self._exit_stack: AsyncExitStack | None = None
        self._stop_sessions = anyio.Event()
        self._sessions_done = anyio.Event()
        self._task_group: TaskGroup | None = None
        self._socket: socket.socket | None = None
        self._uvicorn: uvicorn.Server | None = None
        self._serve_done = anyio.Event()
        self._local: LocalStreamTransport | None = None
        self._destroyed = anyio.Event()
        self._destroy_done = anyio.Event()

    async def __aenter__(self) -> Gateway:
        if self._exit_stack is not None:
            raise LifecycleError("Gateway context can only be entered once")
        self._exit_stack = AsyncExitStack()
        self._task_group = await self._exit_stack.enter_async_context(anyio.create_task_group())
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        try:
            with anyio.CancelScope(shield=True):
                await self.destroy()
        finally:
            assert self._exit_stack is not None
            self._task_group = None
            result = await self._exit_stack.__aexit__(exc_type, exc_val, exc_tb)
        return result

    @property
    def port(self) -> int | None:
        """The port actually bound, or None when not serving."""
        if self._socket is None or self.network_state is not NetworkState.SERVING:
            return None
        return self._socket.getsockname()[1]

    @property
    def local_transport(self) -> LocalStreamTransport | None:
        return self._local

    # --- network lifeline ---

    async def start(self, host: str | None = None, port: int | None = None) -> None:
        """Bind the network listener and begin accepting sessions.

        May be called again after :meth:`destroy` has finished.

        Raises:
            LifecycleError: if the gateway is not entered, already serving or
                mid-destroy, or the address cannot be bound.
        """
        task_group = self._require_task_group()
        if self.network_state is NetworkState.SERVING:
            raise LifecycleError(f"Cannot start gateway in state {self.network_state.value}")
        if self._destroyed.is_set() and not self._destroy_done.is_set():
            raise LifecycleError("Cannot start gateway while it is being destroyed")

        host = host if host is not None else self.settings.host
        port = port if port is not None else self.settings.port
        sock = _bind_socket(host, port)
        self._reset_network()

        # Registration is closed before the first connection can arrive.
        self.registry.freeze()
        sessions_started = False
        try:
            await task_group.start(self._run_sessions)
            sessions_started = True
            app = create_app(RequestRouter(self.sessions), self.settings.path)
            config = uvicorn.Config(
                app,
                lifespan="off",
                log_level=self.settings.log_level.lower(),
                timeout_graceful_shutdown=max(1, int(self.settings.shutdown_timeout)),
            )
            self._uvicorn = uvicorn.Server(config)
            self._socket = sock
            await task_group.start(self._serve, self._uvicorn, sock)
        except BaseException:
            sock.close()
            self._socket = None
            self._uvicorn = None
            if sessions_started:
                with anyio.CancelScope(shield=True):
                    self._stop_sessions.set()
                    await self._sessions_done.wait()
            raise

        self.network_state = NetworkState.SERVING
        logger.info(
            "Gateway %s %s listening on http://%s:%d%s",
            self.implementation.name,
            self.implementation.version,
            host,
            sock.getsockname()[1],
            self.settings.path,
        )

    def _reset_network(self) -> None:
        # SessionManager.run() is once-only, so every start gets a new manager.
        self.sessions = SessionManager(self.server)
        self._stop_sessions = anyio.Event()
        self._sessions_done = anyio.Event()
        self._serve_done = anyio.Event()
        self._destroyed = anyio.Event()
        self._destroy_done = anyio.Event()
        self._uvicorn = None

    async def _run_sessions(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        try:
            async with self.sessions.run():
                task_status.started()
                await self._stop_sessions.wait()
        finally:
            self._sessions_done.set()

    async def _serve(
        self,
        server: uvicorn.Server,
        sock: socket.socket,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        task_status.started()
        try:
            await server.serve(sockets=[sock])
        except Exception:
            logger.exception("HTTP listener crashed")
        finally:
            self._serve_done.set()

    # --- local stream lifeline ---

    async def connect_stdio(
        self,
        stdin: anyio.AsyncFile[str] | None = None,
        stdout: anyio.AsyncFile[str] | None = None,
    ) -> LocalStreamTransport:
        """Connect the single local-stream transport to stdin/stdout (or the given files)."""
        task_group = self._require_task_group()
        if self.local_state is not LocalStreamState.UNCONNECTED:
            raise LifecycleError(f"Cannot connect local stream in state {self.local_state.value}")

        transport = LocalStreamTransport(stdin=stdin, stdout=stdout)

        async def on_message(sink: ResponseSink, message: JSONRPCMessage) -> None:
            await self.server.handle_message(sink, message)

        transport.bind(on_message, self._on_local_closed)
        self._local = transport
        self.local_state = LocalStreamState.CONNECTED
        await task_group.start(transport.run)
        logger.info("Local stream connected")
        return transport

    def _on_local_closed(self, transport: Transport) -> None:
        self.local_state = LocalStreamState.CLOSED

    # --- teardown ---

    async def destroy(self) -> None:
        """Tear everything down. Safe to call more than once."""
        if self._destroyed.is_set():
            await self._destroy_done.wait()
            return
        self._destroyed.set()
        logger.info("Destroying gateway")

        # (a) stop accepting new connections and sessions
        self.sessions.stop_accepting()
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True

        # (b) close every live session
        await self.sessions.close_all()

        # (c) close the local stream
        if self._local is not None:
            await self._local.close()
        self.local_state = LocalStreamState.CLOSED

        # (d) release the listening port
        if self._uvicorn is not None:
            with anyio.move_on_after(self.settings.shutdown_timeout + 1):
                await self._serve_done.wait()
            if not self._serve_done.is_set():
                logger.warning("HTTP listener did not stop in time, forcing exit")
                self._uvicorn.force_exit = True
                await self._serve_done.wait()
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._stop_sessions.set()
        if self._uvicorn is not None:
            await self._sessions_done.wait()

        if self.network_state is NetworkState.SERVING:
            logger.info("Gateway stopped")
        self.network_state = NetworkState.STOPPED
        self._destroy_done.set()

    async def wait_closed(self) -> None:
        """Block until the gateway is destroyed or its main lifeline ends.

        The main lifeline is the HTTP listener when serving, otherwise the
        local stream.
        """
        async with anyio.create_task_group() as tg:

            async def watch(wait: Callable[[], Awaitable[Any]]) -> None:
                await wait()
                tg.cancel_scope.cancel()

            tg.start_soon(watch, self._destroyed.wait)
            if self.network_state is NetworkState.SERVING:
                tg.start_soon(watch, self._serve_done.wait)
            elif self._local is not None:
                tg.start_soon(watch, self._local.wait_closed)

    def _require_task_group(self) -> TaskGroup:
        if self._task_group is None:
            raise LifecycleError("Gateway is not running. Use 'async with Gateway(...)' first.")
        return self._task_group


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(socket.SOMAXCONN)
        sock.set_inheritable(True)
    except OSError as e:
        sock.close()
        raise LifecycleError(f"Cannot bind {host}:{port}: {e}") from e
    return sock
