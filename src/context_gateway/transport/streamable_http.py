"""Per-session network-stream transport.

One instance per remote session. Client-to-server traffic arrives as discrete
POST bodies and is queued to a single worker task, so a session's messages are
handled strictly in arrival order. Server-to-client notifications that are not
tied to a request go out on a long-lived push stream opened with GET.

This module is framework-agnostic: the Starlette router turns HTTP requests
into calls on :class:`NetworkStreamTransport` and turns the returned
:data:`PostResult` back into a response.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from http import HTTPStatus

import anyio
from anyio.abc import TaskStatus
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from context_gateway.context import ResponseSink
from context_gateway.exceptions import ProtocolError, TransportError
from context_gateway.transport.base import Transport
from context_gateway.transport.sink import ChannelSink, NullSink, SinkEvent
from context_gateway.types.json_rpc import (
    INTERNAL_ERROR,
    JSONRPCMessage,
    JSONRPCRequest,
    JSONRPCResponse,
    error_response,
)

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"

NO_VALID_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_MESSAGE = "Invalid or missing session ID"

# Buffer sizes for per-request response channels and the push stream.
RESPONSE_BUFFER_SIZE = 16
PUSH_BUFFER_SIZE = 32


# --- Post result types ---


@dataclass
class AcceptedResponse:
    """The message was a notification or a peer response. Ack with 202."""


@dataclass
class JSONResult:
    """The handler produced only its final result. Return it as a JSON body."""

    body: JSONRPCResponse
    session_id: str


@dataclass
class SSEStream:
    """The handler is streaming. The first event is already available."""

    first_event: SinkEvent
    event_stream: MemoryObjectReceiveStream[SinkEvent]
    session_id: str


PostResult = AcceptedResponse | JSONResult | SSEStream


@dataclass
class _Inbound:
    sink: ResponseSink
    message: JSONRPCMessage


class NetworkStreamTransport(Transport):
    """Transport bound to exactly one network session.

    The session manager creates it, binds it to the dispatch pipeline and
    starts :meth:`run` in its task group. Closing the transport cancels only
    the work of this session.
    """

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self.session_id = session_id
        self._inbound_writer: MemoryObjectSendStream[_Inbound]
        self._inbound_reader: MemoryObjectReceiveStream[_Inbound]
        self._inbound_writer, self._inbound_reader = anyio.create_memory_object_stream[_Inbound](math.inf)
        self._push_writer: MemoryObjectSendStream[JSONRPCMessage] | None = None
        self._cancel_scope: anyio.CancelScope | None = None

    def __repr__(self) -> str:
        return f"<NetworkStreamTransport session={self.session_id}>"

    @property
    def has_push_stream(self) -> bool:
        return self._push_writer is not None

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        """Worker loop: dispatch queued messages one at a time."""
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            task_status.started()
            async with self._inbound_reader:
                try:
                    async for inbound in self._inbound_reader:
                        await self._process(inbound)
                except Exception:
                    logger.exception("Session %s crashed", self.session_id)
                finally:
                    await self.close()

    async def _process(self, inbound: _Inbound) -> None:
        try:
            await self.dispatch(inbound.sink, inbound.message)
        except TransportError:
            raise
        except Exception:
            logger.exception("Error handling message in session %s", self.session_id)
            if isinstance(inbound.message, JSONRPCRequest):
                await inbound.sink.send_result(error_response(INTERNAL_ERROR, "Internal error", inbound.message.id))
        finally:
            await inbound.sink.close()

    async def handle_post(self, message: JSONRPCMessage) -> PostResult:
        """Queue one inbound message and decide how the HTTP layer should answer."""
        if not isinstance(message, JSONRPCRequest):
            await self._enqueue(_Inbound(NullSink(), message))
            return AcceptedResponse()

        send, recv = anyio.create_memory_object_stream[SinkEvent](RESPONSE_BUFFER_SIZE)
        await self._enqueue(_Inbound(ChannelSink(send), message))

        try:
            first = await recv.receive()
        except anyio.EndOfStream:
            # The session closed before the request produced anything.
            recv.close()
            return JSONResult(
                body=error_response(INTERNAL_ERROR, "Session closed before the request completed", message.id),
                session_id=self.session_id,
            )

        if first.is_final:
            recv.close()
            return JSONResult(body=first.message, session_id=self.session_id)  # type: ignore[arg-type]

        return SSEStream(first_event=first, event_stream=recv, session_id=self.session_id)

    async def _enqueue(self, inbound: _Inbound) -> None:
        try:
            await self._inbound_writer.send(inbound)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
            raise ProtocolError(NO_VALID_SESSION_MESSAGE) from e

    def open_push_stream(self) -> MemoryObjectReceiveStream[JSONRPCMessage]:
        """Open the session's single server-to-client push stream."""
        if self.closed:
            raise ProtocolError(INVALID_SESSION_MESSAGE)
        if self._push_writer is not None:
            raise ProtocolError(
                "Conflict: Only one push stream is allowed per session",
                status_code=HTTPStatus.CONFLICT,
            )
        self._push_writer, reader = anyio.create_memory_object_stream[JSONRPCMessage](PUSH_BUFFER_SIZE)
        logger.debug("Push stream opened for session %s", self.session_id)
        return reader

    def release_push_stream(self, reader: MemoryObjectReceiveStream[JSONRPCMessage]) -> None:
        """Called by the HTTP layer when the peer drops the push stream."""
        reader.close()
        if self._push_writer is not None:
            self._push_writer.close()
            self._push_writer = None
            logger.debug("Push stream released for session %s", self.session_id)

    async def send(self, message: JSONRPCMessage) -> None:
        """Push an unsolicited message to the peer, if it is listening."""
        writer = self._push_writer
        if writer is None:
            logger.debug("No push stream for session %s, dropping %s", self.session_id, type(message).__name__)
            return
        try:
            await writer.send(message)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("Push stream for session %s is gone", self.session_id)
            if self._push_writer is writer:
                self._push_writer = None

    async def _teardown(self) -> None:
        self._inbound_writer.close()
        if self._push_writer is not None:
            self._push_writer.close()
            self._push_writer = None
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()
        # Fail any requests still waiting in the queue.
        pending: list[_Inbound] = []
        while True:
            try:
                pending.append(self._inbound_reader.receive_nowait())
            except (anyio.WouldBlock, anyio.EndOfStream, anyio.ClosedResourceError):
                break
        for inbound in pending:
            await inbound.sink.close()
