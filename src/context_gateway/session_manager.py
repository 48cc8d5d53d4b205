"""Session manager: owns the session-id -> transport map for the network surface."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from http import HTTPStatus
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup

from context_gateway.context import ResponseSink
from context_gateway.exceptions import ProtocolError
from context_gateway.server import GatewayServer
from context_gateway.session import Session
from context_gateway.transport.base import MessageHandler, Transport
from context_gateway.transport.streamable_http import NetworkStreamTransport
from context_gateway.types.json_rpc import JSONRPCMessage

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Creates, looks up and tears down network sessions.

    The map is only ever mutated in two places: a session is installed by
    :meth:`create_session` before its id is returned to anyone, and removed by
    the close hook of its transport, synchronously with the close
    notification. Lookups therefore never observe a half-closed session.

    Important: :meth:`run` can only be entered once per instance. Create a new
    instance if you need to serve again.

    Args:
        server: The protocol dispatcher every session's transport is bound to
    """

    def __init__(self, server: GatewayServer) -> None:
        self.server = server
        self._sessions: dict[str, Session] = {}
        self._session_creation_lock = anyio.Lock()

        # The task group will be set during run()
        self._task_group: TaskGroup | None = None
        self._run_lock = anyio.Lock()
        self._has_started = False
        self._accepting = False

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """
        Run the session manager; every session's worker lives in this task group.

        On exit all live sessions are closed.
        """
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError(
                    "SessionManager .run() can only be called once per instance. "
                    "Create a new instance if you need to run again."
                )
            self._has_started = True

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            self._accepting = True
            logger.info("Session manager started")
            try:
                yield
            finally:
                logger.info("Session manager shutting down")
                self._accepting = False
                await self.close_all()
                tg.cancel_scope.cancel()
                self._task_group = None

    @property
    def accepting(self) -> bool:
        return self._accepting

    def stop_accepting(self) -> None:
        """Refuse new sessions from now on; live sessions are unaffected."""
        self._accepting = False

    def get(self, session_id: str | None) -> Session | None:
        """Return the live session for ``session_id``, or None if unknown or closed."""
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    async def create_session(self) -> Session:
        """Create a session with a fresh transport and an unguessable id.

        The ``(id, transport)`` pair is in the map before this returns, so a
        follow-up request using the id can never race ahead of it.
        """
        if self._task_group is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")
        if not self._accepting:
            raise ProtocolError("Service Unavailable: gateway is shutting down", status_code=HTTPStatus.SERVICE_UNAVAILABLE)

        async with self._session_creation_lock:
            session_id = uuid4().hex
            while session_id in self._sessions:
                session_id = uuid4().hex

            transport = NetworkStreamTransport(session_id)
            session = Session(id=session_id, transport=transport)
            transport.bind(self._pipeline(session), self._on_transport_closed)
            self._sessions[session_id] = session

            await self._task_group.start(transport.run)

        logger.info("Created new session %s", session_id)
        return session

    async def terminate(self, session_id: str) -> bool:
        """Close the session's transport. Returns False if it was not live."""
        session = self._sessions.get(session_id)
        if session is None:
            return False
        logger.info("Terminating session %s", session_id)
        await session.transport.close()
        return True

    async def close_all(self) -> None:
        for session in list(self._sessions.values()):
            await session.transport.close()

    def _pipeline(self, session: Session) -> MessageHandler:
        async def on_message(sink: ResponseSink, message: JSONRPCMessage) -> None:
            client = await self.server.handle_message(sink, message, session_id=session.id)
            if client is not None:
                session.client_info = client.client_info
                session.protocol_version = client.protocol_version

        return on_message

    def _on_transport_closed(self, transport: Transport) -> None:
        if not isinstance(transport, NetworkStreamTransport):
            return
        session = self._sessions.get(transport.session_id)
        # Repeated or stale notifications are no-ops.
        if session is None or session.transport is not transport:
            return
        del self._sessions[transport.session_id]
        logger.info("Session %s closed", transport.session_id)
