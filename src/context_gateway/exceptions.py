"""Error taxonomy for the gateway.

Every error carries an :class:`ErrorData` so it can be put on the wire as-is.
"""

from http import HTTPStatus
from typing import Any

from context_gateway.types.json_rpc import (
    CONNECTION_ERROR,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    ErrorData,
)


class GatewayError(Exception):
    """Base error for the gateway.

    Attributes:
        error: The ErrorData describing the failure, suitable for a JSON-RPC
               error response.
    """

    error: ErrorData

    def __init__(self, message: str, code: int = INTERNAL_ERROR, data: Any | None = None):
        super().__init__(message)
        self.error = ErrorData(code=code, message=message, data=data)

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message


class ProtocolError(GatewayError):
    """A malformed or out-of-sequence exchange.

    Always answered with a structured error body; ``status_code`` is the HTTP
    status used on the network transport.
    """

    def __init__(
        self,
        message: str,
        code: int = CONNECTION_ERROR,
        status_code: int = HTTPStatus.BAD_REQUEST,
        data: Any | None = None,
    ):
        super().__init__(message, code=code, data=data)
        self.status_code = status_code


class DispatchError(GatewayError):
    """Unknown capability or arguments that fail schema validation."""

    def __init__(self, message: str, code: int = INVALID_PARAMS, data: Any | None = None):
        super().__init__(message, code=code, data=data)


class TransportError(GatewayError):
    """Peer disconnect or channel I/O failure. Tears the session down."""

    def __init__(self, message: str, data: Any | None = None):
        super().__init__(message, code=CONNECTION_ERROR, data=data)


class LifecycleError(GatewayError):
    """Startup failure (e.g. the listen port is taken) or an invalid state transition."""


class RegistrationError(ValueError):
    """A capability was registered twice or after the registry was frozen."""
