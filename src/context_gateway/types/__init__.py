"""Protocol payload types for the gateway."""

from context_gateway.types.base import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS, EmptyResult, Result
from context_gateway.types.common import ClientCapabilities, Implementation, ServerCapabilities
from context_gateway.types.content import ContentBlock, EmbeddedResource, ImageContent, TextContent
from context_gateway.types.exchanges import (
    CallToolExchange,
    CancelledNotification,
    ClientNotificationAdapter,
    ClientRequestAdapter,
    GetPromptExchange,
    InitializedNotification,
    InitializeExchange,
    ListPromptsExchange,
    ListResourcesExchange,
    ListToolsExchange,
    PingExchange,
    ReadResourceExchange,
    is_initialize_request,
)
from context_gateway.types.initialize import InitializeRequestParams, InitializeResult
from context_gateway.types.json_rpc import (
    CONNECTION_ERROR,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RESOURCE_NOT_FOUND,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCMessageAdapter,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
    RequestId,
)
from context_gateway.types.prompts import GetPromptResult, ListPromptsResult, Prompt, PromptArgument, PromptMessage
from context_gateway.types.resources import (
    BlobResourceContents,
    ListResourcesResult,
    ReadResourceResult,
    Resource,
    TextResourceContents,
)
from context_gateway.types.tools import CallToolResult, ListToolsResult, Tool

__all__ = [
    "BlobResourceContents",
    "CONNECTION_ERROR",
    "CallToolExchange",
    "CallToolResult",
    "CancelledNotification",
    "ClientCapabilities",
    "ClientNotificationAdapter",
    "ClientRequestAdapter",
    "ContentBlock",
    "EmbeddedResource",
    "EmptyResult",
    "ErrorData",
    "GetPromptExchange",
    "GetPromptResult",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "ImageContent",
    "Implementation",
    "InitializeExchange",
    "InitializeRequestParams",
    "InitializeResult",
    "InitializedNotification",
    "JSONRPCErrorResponse",
    "JSONRPCMessage",
    "JSONRPCMessageAdapter",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCResultResponse",
    "LATEST_PROTOCOL_VERSION",
    "ListPromptsExchange",
    "ListPromptsResult",
    "ListResourcesExchange",
    "ListResourcesResult",
    "ListToolsExchange",
    "ListToolsResult",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "PingExchange",
    "Prompt",
    "PromptArgument",
    "PromptMessage",
    "RESOURCE_NOT_FOUND",
    "ReadResourceExchange",
    "ReadResourceResult",
    "RequestId",
    "Resource",
    "Result",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ServerCapabilities",
    "TextContent",
    "TextResourceContents",
    "Tool",
    "is_initialize_request",
]
