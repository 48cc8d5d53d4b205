"""Tagged unions over the finite set of exchanges a peer may send.

Every inbound request or notification is validated against the model for its
``method`` before any handler sees it, so handlers only ever receive typed
params.
"""

from typing import Annotated, Any, Final, Literal

from pydantic import Field, TypeAdapter

from context_gateway.types.base import NotificationParams, RequestParams
from context_gateway.types.initialize import InitializeRequestParams
from context_gateway.types.json_rpc import NotificationBase, RequestBase, RequestId
from context_gateway.types.prompts import GetPromptRequestParams, ListPromptsRequestParams
from context_gateway.types.resources import ListResourcesRequestParams, ReadResourceRequestParams
from context_gateway.types.tools import CallToolRequestParams, ListToolsRequestParams


class InitializeExchange(RequestBase[Literal["initialize"], InitializeRequestParams]):
    """Sent by a peer when it first connects; establishes a session."""

    method: Literal["initialize"] = "initialize"


class PingExchange(RequestBase[Literal["ping"], RequestParams | None]):
    method: Literal["ping"] = "ping"
    params: RequestParams | None = None


class ListToolsExchange(RequestBase[Literal["tools/list"], ListToolsRequestParams | None]):
    method: Literal["tools/list"] = "tools/list"
    params: ListToolsRequestParams | None = None


class CallToolExchange(RequestBase[Literal["tools/call"], CallToolRequestParams]):
    method: Literal["tools/call"] = "tools/call"


class ListResourcesExchange(RequestBase[Literal["resources/list"], ListResourcesRequestParams | None]):
    method: Literal["resources/list"] = "resources/list"
    params: ListResourcesRequestParams | None = None


class ReadResourceExchange(RequestBase[Literal["resources/read"], ReadResourceRequestParams]):
    method: Literal["resources/read"] = "resources/read"


class ListPromptsExchange(RequestBase[Literal["prompts/list"], ListPromptsRequestParams | None]):
    method: Literal["prompts/list"] = "prompts/list"
    params: ListPromptsRequestParams | None = None


class GetPromptExchange(RequestBase[Literal["prompts/get"], GetPromptRequestParams]):
    method: Literal["prompts/get"] = "prompts/get"


ClientRequest = Annotated[
    InitializeExchange
    | PingExchange
    | ListToolsExchange
    | CallToolExchange
    | ListResourcesExchange
    | ReadResourceExchange
    | ListPromptsExchange
    | GetPromptExchange,
    Field(discriminator="method"),
]

ClientRequestAdapter: TypeAdapter[ClientRequest] = TypeAdapter(ClientRequest)

REQUEST_METHODS: Final[frozenset[str]] = frozenset(
    {
        "initialize",
        "ping",
        "tools/list",
        "tools/call",
        "resources/list",
        "resources/read",
        "prompts/list",
        "prompts/get",
    }
)


class CancelledNotificationParams(NotificationParams):
    request_id: Annotated[RequestId, Field(alias="requestId")]
    reason: str | None = None


class InitializedNotification(NotificationBase[Literal["notifications/initialized"], NotificationParams | None]):
    method: Literal["notifications/initialized"] = "notifications/initialized"
    params: NotificationParams | None = None


class CancelledNotification(NotificationBase[Literal["notifications/cancelled"], CancelledNotificationParams]):
    method: Literal["notifications/cancelled"] = "notifications/cancelled"


ClientNotification = Annotated[
    InitializedNotification | CancelledNotification,
    Field(discriminator="method"),
]

ClientNotificationAdapter: TypeAdapter[ClientNotification] = TypeAdapter(ClientNotification)


def is_initialize_request(body: Any) -> bool:
    """Return True if ``body`` is a well-formed initialization exchange."""
    if not isinstance(body, dict) or body.get("method") != "initialize" or "id" not in body:
        return False
    try:
        InitializeExchange.model_validate(body)
    except ValueError:
        return False
    return True
