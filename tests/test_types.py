import pytest
from pydantic import ValidationError

from context_gateway.types import (
    LATEST_PROTOCOL_VERSION,
    CallToolExchange,
    ClientNotificationAdapter,
    ClientRequestAdapter,
    InitializeExchange,
    PingExchange,
    is_initialize_request,
)
from context_gateway.types.exchanges import CancelledNotification, InitializedNotification
from context_gateway.types.json_rpc import (
    JSONRPCErrorResponse,
    JSONRPCMessageAdapter,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
    error_response,
)


def _init_body(request_id: int = 1) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": LATEST_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0"},
        },
    }


def test_jsonrpc_message_variants():
    assert isinstance(JSONRPCMessageAdapter.validate_python({"jsonrpc": "2.0", "id": 1, "method": "ping"}), JSONRPCRequest)
    assert isinstance(
        JSONRPCMessageAdapter.validate_python({"jsonrpc": "2.0", "method": "notifications/initialized"}),
        JSONRPCNotification,
    )
    assert isinstance(JSONRPCMessageAdapter.validate_python({"jsonrpc": "2.0", "id": 2, "result": {}}), JSONRPCResultResponse)
    assert isinstance(
        JSONRPCMessageAdapter.validate_python({"jsonrpc": "2.0", "id": 3, "error": {"code": -1, "message": "x"}}),
        JSONRPCErrorResponse,
    )


def test_jsonrpc_rejects_wrong_version():
    with pytest.raises(ValidationError):
        JSONRPCMessageAdapter.validate_python({"jsonrpc": "1.0", "id": 1, "method": "ping"})


def test_client_request_union_dispatches_on_method():
    request = ClientRequestAdapter.validate_python(_init_body())
    assert isinstance(request, InitializeExchange)
    assert request.params.client_info.name == "test-client"

    assert isinstance(ClientRequestAdapter.validate_python({"jsonrpc": "2.0", "id": 2, "method": "ping"}), PingExchange)

    call = ClientRequestAdapter.validate_python(
        {"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "add", "arguments": {"a": 1}}}
    )
    assert isinstance(call, CallToolExchange)
    assert call.params.arguments == {"a": 1}


def test_client_request_union_rejects_unknown_method():
    with pytest.raises(ValidationError):
        ClientRequestAdapter.validate_python({"jsonrpc": "2.0", "id": 1, "method": "tools/destroy"})


def test_tools_call_requires_params():
    with pytest.raises(ValidationError):
        ClientRequestAdapter.validate_python({"jsonrpc": "2.0", "id": 1, "method": "tools/call"})


def test_client_notifications():
    assert isinstance(
        ClientNotificationAdapter.validate_python({"jsonrpc": "2.0", "method": "notifications/initialized"}),
        InitializedNotification,
    )
    cancelled = ClientNotificationAdapter.validate_python(
        {"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 7, "reason": "bored"}}
    )
    assert isinstance(cancelled, CancelledNotification)
    assert cancelled.params.request_id == 7


def test_is_initialize_request():
    assert is_initialize_request(_init_body())
    # notifications, other methods and malformed params are not initialization exchanges
    assert not is_initialize_request({"jsonrpc": "2.0", "method": "initialize"})
    assert not is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert not is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    assert not is_initialize_request([_init_body()])
    assert not is_initialize_request(None)


def test_error_response_serializes_null_id():
    response = error_response(-32000, "Bad Request: No valid session ID provided")
    assert response.model_dump(by_alias=True) == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": -32000, "message": "Bad Request: No valid session ID provided", "data": None},
    }
