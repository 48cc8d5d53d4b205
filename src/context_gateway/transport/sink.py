"""ResponseSink implementations shared by the transports."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from context_gateway.types.json_rpc import JSONRPCMessage, JSONRPCResponse

logger = logging.getLogger(__name__)


@dataclass
class SinkEvent:
    """An outgoing message produced while handling one request."""

    message: JSONRPCMessage
    is_final: bool = False


class ChannelSink:
    """ResponseSink that writes events to a memory channel.

    The HTTP layer reads the other end to decide between a JSON body and an SSE
    stream. If the reader has gone away (peer disconnected mid-stream) further
    events are dropped so the session's worker never blocks on a dead request.
    """

    def __init__(self, send_stream: MemoryObjectSendStream[SinkEvent]) -> None:
        self._send = send_stream
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        await self._emit(SinkEvent(message=message))

    async def send_result(self, response: JSONRPCResponse) -> None:
        await self._emit(SinkEvent(message=response, is_final=True))
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with anyio.CancelScope(shield=True):
            await self._send.aclose()

    async def _emit(self, event: SinkEvent) -> None:
        if self._closed:
            return
        try:
            await self._send.send(event)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("Response reader went away, dropping %s", type(event.message).__name__)
            await self.close()


class WriterSink:
    """ResponseSink that hands every message straight to a writer coroutine.

    Used by the local stream, where there is a single ordered output channel.
    """

    def __init__(self, write: Callable[[JSONRPCMessage], Awaitable[None]]) -> None:
        self._write = write
        self._closed = False

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        if not self._closed:
            await self._write(message)

    async def send_result(self, response: JSONRPCResponse) -> None:
        if not self._closed:
            await self._write(response)
        self._closed = True

    async def close(self) -> None:
        self._closed = True


class NullSink:
    """A sink that does nothing. Used for notifications, which produce no response."""

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        pass

    async def send_result(self, response: JSONRPCResponse) -> None:
        pass

    async def close(self) -> None:
        pass
