from context_gateway.transport.base import CloseHandler, MessageHandler, Transport
from context_gateway.transport.stdio import LocalStreamTransport
from context_gateway.transport.streamable_http import MCP_SESSION_ID_HEADER, NetworkStreamTransport

__all__ = [
    "CloseHandler",
    "LocalStreamTransport",
    "MCP_SESSION_ID_HEADER",
    "MessageHandler",
    "NetworkStreamTransport",
    "Transport",
]
