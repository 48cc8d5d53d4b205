"""The channel contract shared by the local stream and per-session network transports."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import anyio

from context_gateway.context import ResponseSink
from context_gateway.exceptions import TransportError
from context_gateway.types.json_rpc import JSONRPCMessage

logger = logging.getLogger(__name__)

MessageHandler = Callable[[ResponseSink, JSONRPCMessage], Awaitable[None]]
CloseHandler = Callable[["Transport"], None]


class Transport(ABC):
    """A live channel between one peer and the dispatch pipeline.

    ``bind`` attaches the pipeline, ``send`` pushes a message toward the peer
    and ``close`` tears the channel down. Close notification is one-shot: the
    bound close handler runs exactly once and ``closed_event`` is set, no
    matter how many times or from where ``close`` is called.
    """

    def __init__(self) -> None:
        self._on_message: MessageHandler | None = None
        self._on_close: CloseHandler | None = None
        self._closed = False
        self.closed_event = anyio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_bound(self) -> bool:
        return self._on_message is not None

    def bind(self, on_message: MessageHandler, on_close: CloseHandler | None = None) -> None:
        if self._on_message is not None:
            raise TransportError(f"{type(self).__name__} is already bound")
        self._on_message = on_message
        self._on_close = on_close

    async def dispatch(self, sink: ResponseSink, message: JSONRPCMessage) -> None:
        """Hand one inbound message to the bound pipeline."""
        if self._on_message is None:
            raise TransportError(f"{type(self).__name__} received a message before bind()")
        await self._on_message(sink, message)

    @abstractmethod
    async def send(self, message: JSONRPCMessage) -> None:
        """Deliver a message toward the peer."""

    async def close(self) -> None:
        """Tear the channel down. Idempotent; never raises."""
        if self._closed:
            return
        # Flag and notify before any await so the transport is unreachable
        # by the time another task gets to run.
        self._closed = True
        self._notify_closed()
        with anyio.CancelScope(shield=True):
            try:
                await self._teardown()
            except Exception:
                logger.exception("Error tearing down %s", self)
        self.closed_event.set()

    async def wait_closed(self) -> None:
        await self.closed_event.wait()

    def _notify_closed(self) -> None:
        on_close, self._on_close = self._on_close, None
        if on_close is None:
            return
        try:
            on_close(self)
        except Exception:
            logger.exception("Close handler failed for %s", self)

    @abstractmethod
    async def _teardown(self) -> None:
        """Release the channel's resources. Called once, from close()."""
