"""Local-stream transport: the single implicit peer on the process' stdin/stdout.

Messages are newline-delimited JSON-RPC. There is no session id and no network
handshake; the stream lives for as long as the process does, or until stdin
reaches EOF.

Example:
    ```python
    transport = LocalStreamTransport()
    transport.bind(pipeline)
    async with anyio.create_task_group() as tg:
        await tg.start(transport.run)
    ```
"""

from __future__ import annotations

import logging
import sys
from io import TextIOWrapper
from typing import BinaryIO

import anyio
import anyio.to_thread
from anyio.abc import TaskStatus
from pydantic import ValidationError

from context_gateway.exceptions import TransportError
from context_gateway.transport.base import Transport
from context_gateway.transport.sink import WriterSink
from context_gateway.types.json_rpc import (
    INVALID_REQUEST,
    PARSE_ERROR,
    JSONRPCMessage,
    JSONRPCMessageAdapter,
    error_response,
)

logger = logging.getLogger(__name__)


class _NonClosingTextIOWrapper(TextIOWrapper):
    """Text wrapper that never closes the underlying binary stream.

    The transport must not close the process' real stdin/stdout handles when
    it shuts down.
    """

    def close(self) -> None:
        if self.closed:
            return
        if self.writable():
            self.flush()


def wrap_stdio(binary_stream: BinaryIO) -> anyio.AsyncFile[str]:
    """Wrap a binary stream as UTF-8 text without taking ownership of it.

    Undecodable bytes are replaced, so a corrupt line fails JSON parsing
    instead of ending the stream.
    """
    return anyio.wrap_file(_NonClosingTextIOWrapper(binary_stream, encoding="utf-8", errors="replace"))


class LocalStreamTransport(Transport):
    """The trusted local peer channel. Exactly one per process."""

    def __init__(
        self,
        stdin: anyio.AsyncFile[str] | None = None,
        stdout: anyio.AsyncFile[str] | None = None,
    ) -> None:
        super().__init__()
        # Encoding of stdin/stdout is platform-dependent, so the underlying
        # binary streams are re-wrapped to force UTF-8.
        self._stdin = stdin or wrap_stdio(sys.stdin.buffer)
        self._stdout = stdout or wrap_stdio(sys.stdout.buffer)
        self._write_lock = anyio.Lock()
        self._cancel_scope: anyio.CancelScope | None = None

    def __repr__(self) -> str:
        return "<LocalStreamTransport>"

    async def send(self, message: JSONRPCMessage) -> None:
        if self.closed:
            logger.debug("Dropping %s for closed local stream", type(message).__name__)
            return
        data = message.model_dump_json(by_alias=True, exclude_none=True)
        async with self._write_lock:
            try:
                await self._stdout.write(data + "\n")
                await self._stdout.flush()
            except (OSError, ValueError) as e:
                raise TransportError(f"Local stream write failed: {e}") from e

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        """Read stdin line by line, dispatching each message in arrival order.

        Returns once stdin reaches EOF or the transport is closed.
        """
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            task_status.started()
            try:
                while not self.closed:
                    raw_line = await self._readline()
                    if not raw_line:
                        logger.info("Local stream reached EOF")
                        break
                    line = raw_line.strip()
                    if line:
                        await self._handle_line(line)
            except TransportError:
                logger.warning("Local stream failed, closing transport", exc_info=True)
            finally:
                await self.close()

    async def _readline(self) -> str:
        try:
            # A blocking read of the real stdin must not hold up shutdown.
            return await anyio.to_thread.run_sync(self._stdin.wrapped.readline, abandon_on_cancel=True)
        except (OSError, ValueError) as e:
            raise TransportError(f"Local stream read failed: {e}") from e

    async def _handle_line(self, line: str) -> None:
        try:
            message = JSONRPCMessageAdapter.validate_json(line)
        except ValidationError as e:
            if any(error["type"] == "json_invalid" for error in e.errors()):
                await self.send(error_response(PARSE_ERROR, "Parse error"))
            else:
                await self.send(error_response(INVALID_REQUEST, "Invalid request"))
            return
        await self.dispatch(WriterSink(self.send), message)

    async def _teardown(self) -> None:
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()
        try:
            await self._stdout.flush()
        except (OSError, ValueError):
            logger.debug("Could not flush local stream output on close", exc_info=True)
