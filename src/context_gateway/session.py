"""Session record owned by the session manager."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from context_gateway.transport.streamable_http import NetworkStreamTransport
from context_gateway.types.common import Implementation


@dataclass(eq=False)
class Session:
    """A bound conversation between one remote peer and the gateway.

    The transport belongs to this session alone. ``client_info`` and
    ``protocol_version`` are filled in once the handshake has been answered.
    """

    id: str
    transport: NetworkStreamTransport
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    client_info: Implementation | None = None
    protocol_version: str | None = None

    @property
    def closed(self) -> bool:
        return self.transport.closed
