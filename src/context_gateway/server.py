"""Protocol dispatch: turns validated exchanges into capability registry calls.

No I/O, no sessions, no transport knowledge. Transports hand each inbound
message to :meth:`GatewayServer.handle_message` together with a sink to reply
through.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from context_gateway.context import RequestContext, ResponseSink
from context_gateway.exceptions import DispatchError, GatewayError
from context_gateway.registry import CapabilityEntry, CapabilityKind, CapabilityRegistry
from context_gateway.types.base import LATEST_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS, EmptyResult
from context_gateway.types.common import Implementation, ServerCapabilities
from context_gateway.types.content import EmbeddedResource, ImageContent, TextContent
from context_gateway.types.exchanges import (
    REQUEST_METHODS,
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
)
from context_gateway.types.initialize import InitializeRequestParams, InitializeResult
from context_gateway.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
    error_response,
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

logger = logging.getLogger(__name__)


class GatewayServer:
    """Answers discovery, invocation and read exchanges from a CapabilityRegistry.

    Usage:
        server = GatewayServer(Implementation(name="gateway", version="1.0.0"), registry)
        client_info = await server.handle_message(sink, message, session_id="...")
    """

    def __init__(
        self,
        implementation: Implementation,
        registry: CapabilityRegistry,
        *,
        instructions: str | None = None,
    ) -> None:
        self.implementation = implementation
        self.registry = registry
        self.instructions = instructions

    def get_capabilities(self) -> ServerCapabilities:
        """Derive advertised capabilities from what has been registered."""
        caps = ServerCapabilities()
        if self.registry.has(CapabilityKind.TOOL):
            caps.tools = {"listChanged": False}
        if self.registry.has(CapabilityKind.RESOURCE):
            caps.resources = {"subscribe": False, "listChanged": False}
        if self.registry.has(CapabilityKind.PROMPT):
            caps.prompts = {"listChanged": False}
        return caps

    async def handle_message(
        self,
        sink: ResponseSink,
        message: JSONRPCMessage,
        *,
        session_id: str | None = None,
    ) -> InitializeRequestParams | None:
        """Dispatch a single message. Returns the client's params if this was a handshake.

        Requests are always answered through ``sink``; notifications and peer
        responses produce no output.
        """
        if isinstance(message, JSONRPCRequest):
            response, client = await self._handle_request(sink, message, session_id)
            await sink.send_result(response)
            return client

        if isinstance(message, JSONRPCNotification):
            await self._handle_notification(message, session_id)
            return None

        # The gateway never issues server->client requests, so peer responses have nowhere to go.
        logger.debug("Ignoring unsolicited response from peer (session %s)", session_id)
        return None

    async def _handle_request(
        self,
        sink: ResponseSink,
        request: JSONRPCRequest,
        session_id: str | None,
    ) -> tuple[JSONRPCResponse, InitializeRequestParams | None]:
        try:
            exchange = ClientRequestAdapter.validate_python(request.model_dump(by_alias=True, exclude_none=True))
        except ValidationError as e:
            if request.method not in REQUEST_METHODS:
                return error_response(METHOD_NOT_FOUND, f"Method not found: {request.method}", request.id), None
            return error_response(INVALID_PARAMS, f"Invalid params for {request.method}: {e}", request.id), None

        params = getattr(exchange, "params", None)
        meta = getattr(params, "meta", None)
        ctx = RequestContext(
            session_id=session_id,
            request_id=request.id,
            progress_token=meta.progress_token if meta else None,
            _sink=sink,
        )

        try:
            match exchange:
                case InitializeExchange(params=init_params):
                    return self._result(request, self._initialize(init_params)), init_params
                case PingExchange():
                    return self._result(request, EmptyResult()), None
                case ListToolsExchange():
                    return self._result(request, self._list_tools()), None
                case CallToolExchange(params=call):
                    result = await self._call_tool(call.name, call.arguments, ctx)
                    return self._result(request, result), None
                case ListResourcesExchange():
                    return self._result(request, self._list_resources()), None
                case ReadResourceExchange(params=read):
                    result = await self._read_resource(read.uri, ctx)
                    return self._result(request, result), None
                case ListPromptsExchange():
                    return self._result(request, self._list_prompts()), None
                case GetPromptExchange(params=get):
                    result = await self._get_prompt(get.name, get.arguments, ctx)
                    return self._result(request, result), None
        except GatewayError as e:
            return JSONRPCErrorResponse(id=request.id, error=e.error), None
        except Exception:
            logger.exception("Handler error for %s", request.method)
            return error_response(INTERNAL_ERROR, "Internal error", request.id), None

        return error_response(METHOD_NOT_FOUND, f"Method not found: {request.method}", request.id), None

    async def _handle_notification(self, notification: JSONRPCNotification, session_id: str | None) -> None:
        try:
            parsed = ClientNotificationAdapter.validate_python(
                notification.model_dump(by_alias=True, exclude_none=True)
            )
        except ValidationError:
            logger.debug("Ignoring notification %s (session %s)", notification.method, session_id)
            return

        match parsed:
            case InitializedNotification():
                logger.debug("Peer finished initialization (session %s)", session_id)
            case CancelledNotification(params=cancelled):
                logger.info(
                    "Peer cancelled request %s (session %s): %s",
                    cancelled.request_id,
                    session_id,
                    cancelled.reason,
                )

    @staticmethod
    def _result(request: JSONRPCRequest, result: BaseModel) -> JSONRPCResultResponse:
        return JSONRPCResultResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))

    def _initialize(self, params: InitializeRequestParams) -> InitializeResult:
        if params.protocol_version in SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = params.protocol_version
        else:
            protocol_version = LATEST_PROTOCOL_VERSION
        logger.debug(
            "Initialize from %s %s (protocol %s)",
            params.client_info.name,
            params.client_info.version,
            protocol_version,
        )
        return InitializeResult(
            protocol_version=protocol_version,
            capabilities=self.get_capabilities(),
            server_info=self.implementation,
            instructions=self.instructions,
        )

    # --- tools ---

    def _list_tools(self) -> ListToolsResult:
        return ListToolsResult(
            tools=[
                Tool(name=entry.name, description=entry.description or None, input_schema=entry.input_schema)
                for entry in self.registry.list(CapabilityKind.TOOL)
            ]
        )

    async def _call_tool(self, name: str, arguments: dict[str, Any] | None, ctx: RequestContext) -> CallToolResult:
        try:
            value = await self.registry.dispatch(CapabilityKind.TOOL, name, arguments, ctx)
        except DispatchError as e:
            return _error_result(e.message)
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return _error_result(str(e))
        return _to_call_tool_result(value)

    # --- resources ---

    def _list_resources(self) -> ListResourcesResult:
        return ListResourcesResult(
            resources=[
                Resource(
                    uri=entry.uri or entry.name,
                    name=entry.name,
                    description=entry.description or None,
                    mime_type=entry.mime_type,
                )
                for entry in self.registry.list(CapabilityKind.RESOURCE)
            ]
        )

    async def _read_resource(self, uri: str, ctx: RequestContext) -> ReadResourceResult:
        entry = self.registry.find_resource(uri)
        value = await self.registry.dispatch(CapabilityKind.RESOURCE, entry.name, {}, ctx)
        return _to_read_resource_result(entry, value)

    # --- prompts ---

    def _list_prompts(self) -> ListPromptsResult:
        return ListPromptsResult(
            prompts=[
                Prompt(
                    name=entry.name,
                    description=entry.description or None,
                    arguments=_prompt_arguments(entry.input_schema),
                )
                for entry in self.registry.list(CapabilityKind.PROMPT)
            ]
        )

    async def _get_prompt(self, name: str, arguments: dict[str, str] | None, ctx: RequestContext) -> GetPromptResult:
        value = await self.registry.dispatch(CapabilityKind.PROMPT, name, arguments, ctx)
        entry = self.registry.get(CapabilityKind.PROMPT, name)
        assert entry is not None
        return _to_prompt_result(entry, value)


def _error_result(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=message)], is_error=True)


def _to_call_tool_result(value: Any) -> CallToolResult:
    """Normalize whatever a tool handler returned into a CallToolResult."""
    if isinstance(value, CallToolResult):
        return value
    if value is None:
        return CallToolResult(content=[])
    if isinstance(value, TextContent | ImageContent | EmbeddedResource):
        return CallToolResult(content=[value])
    if isinstance(value, str):
        return CallToolResult(content=[TextContent(text=value)])
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return CallToolResult(
            content=[TextContent(text=json.dumps(value, default=str))],
            structured_content=value,
        )
    if isinstance(value, list | tuple):
        if all(isinstance(item, TextContent | ImageContent | EmbeddedResource) for item in value):
            return CallToolResult(content=list(value))
        return CallToolResult(content=[TextContent(text=json.dumps(list(value), default=str))])
    if isinstance(value, bool):
        return CallToolResult(content=[TextContent(text=json.dumps(value))])
    return CallToolResult(content=[TextContent(text=str(value))])


def _to_read_resource_result(entry: CapabilityEntry, value: Any) -> ReadResourceResult:
    uri = entry.uri or entry.name
    if isinstance(value, ReadResourceResult):
        return value
    items = value if isinstance(value, list) else [value]
    contents: list[TextResourceContents | BlobResourceContents] = []
    for item in items:
        if isinstance(item, TextResourceContents | BlobResourceContents):
            contents.append(item)
        elif isinstance(item, bytes):
            mime_type = entry.mime_type or "application/octet-stream"
            contents.append(
                BlobResourceContents(uri=uri, mime_type=mime_type, blob=base64.b64encode(item).decode())
            )
        else:
            contents.append(TextResourceContents(uri=uri, mime_type=entry.mime_type, text=str(item)))
    return ReadResourceResult(contents=contents)


def _to_prompt_result(entry: CapabilityEntry, value: Any) -> GetPromptResult:
    if isinstance(value, GetPromptResult):
        return value
    items = value if isinstance(value, list) else [value]
    messages: list[PromptMessage] = []
    for item in items:
        if isinstance(item, PromptMessage):
            messages.append(item)
        elif isinstance(item, dict):
            messages.append(PromptMessage.model_validate(item))
        else:
            messages.append(PromptMessage(role="user", content=TextContent(text=str(item))))
    return GetPromptResult(description=entry.description or None, messages=messages)


def _prompt_arguments(schema: dict[str, Any]) -> list[PromptArgument] | None:
    properties: dict[str, Any] = schema.get("properties") or {}
    if not properties:
        return None
    required = set(schema.get("required") or ())
    return [
        PromptArgument(name=name, description=prop.get("description"), required=name in required)
        for name, prop in properties.items()
    ]
