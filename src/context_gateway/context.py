"""Per-request context handed to handlers, and the sink contract transports implement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from context_gateway.types.base import ProgressToken
from context_gateway.types.json_rpc import (
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCResponse,
    RequestId,
)


@runtime_checkable
class ResponseSink(Protocol):
    """Transport-specific sink for outgoing messages while one request is processed.

    One per inbound request. The network transport writes events to a channel
    and decides between a JSON body and an SSE stream; the local stream writes
    each message straight to stdout.
    """

    async def send_intermediate(self, message: JSONRPCMessage) -> None:
        """Send a notification before the final result."""
        ...

    async def send_result(self, response: JSONRPCResponse) -> None:
        """Send the final result. After this, the sink is done."""
        ...

    async def close(self) -> None:
        """Ensure the sink is closed (e.g., on handler error)."""
        ...


@dataclass
class RequestContext:
    """What capability handlers receive as their optional second argument."""

    session_id: str | None
    request_id: RequestId
    progress_token: ProgressToken | None
    _sink: ResponseSink

    async def send_notification(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification to the peer while the request is still running.

        On the network transport this turns the response into an SSE stream.
        """
        await self._sink.send_intermediate(JSONRPCNotification(method=method, params=params))

    async def report_progress(self, progress: float, total: float | None = None, message: str | None = None) -> None:
        """Emit ``notifications/progress`` if the peer asked for progress updates."""
        if self.progress_token is None:
            return
        params: dict[str, Any] = {"progressToken": self.progress_token, "progress": progress}
        if total is not None:
            params["total"] = total
        if message is not None:
            params["message"] = message
        await self.send_notification("notifications/progress", params)
