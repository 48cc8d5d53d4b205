"""JSON-RPC 2.0 envelope models used on both the local and network streams."""

from typing import Annotated, Any, Final, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, TypeAdapter, model_serializer

JSONRPC_VERSION: Final[str] = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR: Final[int] = -32700
INVALID_REQUEST: Final[int] = -32600
METHOD_NOT_FOUND: Final[int] = -32601
INVALID_PARAMS: Final[int] = -32602
INTERNAL_ERROR: Final[int] = -32603

# Gateway-specific codes
CONNECTION_ERROR: Final[int] = -32000
RESOURCE_NOT_FOUND: Final[int] = -32002

RequestId = Annotated[int, Field(strict=True)] | str


class JSONRPCBase(BaseModel):
    """Base class for all JSON-RPC messages."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION


MethodT = TypeVar("MethodT", bound=str)
ParamsT = TypeVar("ParamsT", bound=BaseModel | dict[str, Any] | None)


class RequestBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    id: RequestId
    method: MethodT
    params: ParamsT


class JSONRPCRequest(RequestBase[str, dict[str, Any] | None]):
    """A request that expects a response."""

    params: dict[str, Any] | None = None


class NotificationBase(JSONRPCBase, Generic[MethodT, ParamsT]):
    method: MethodT
    params: ParamsT


class JSONRPCNotification(NotificationBase[str, dict[str, Any] | None]):
    """A notification which does not expect a response."""

    params: dict[str, Any] | None = None


class ErrorData(BaseModel):
    """Error information in a JSON-RPC error response."""

    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any | None = None


class JSONRPCResultResponse(JSONRPCBase):
    """A successful (non-error) response to a request."""

    id: RequestId
    result: dict[str, Any]


class JSONRPCErrorResponse(JSONRPCBase):
    """A response to a request that indicates an error occurred."""

    id: RequestId | None = None
    error: ErrorData

    @model_serializer(mode="wrap")
    def _serialize_null_id(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        # JSON-RPC requires "id": null when the request id could not be determined.
        data = handler(self)
        data.setdefault("id", None)
        return data


JSONRPCResponse = JSONRPCResultResponse | JSONRPCErrorResponse
JSONRPCMessage = JSONRPCRequest | JSONRPCNotification | JSONRPCResponse

JSONRPCMessageAdapter: TypeAdapter[JSONRPCMessage] = TypeAdapter(JSONRPCMessage)


def error_response(code: int, message: str, request_id: RequestId | None = None) -> JSONRPCErrorResponse:
    return JSONRPCErrorResponse(id=request_id, error=ErrorData(code=code, message=message))
