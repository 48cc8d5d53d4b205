"""Tool listing and invocation payloads."""

from typing import Annotated, Any

from pydantic import Field

from context_gateway.types.base import GatewayModel, PaginatedRequestParams, RequestParams, Result
from context_gateway.types.content import ContentBlock


class Tool(GatewayModel):
    """Definition of a tool the gateway exposes."""

    name: str
    description: str | None = None
    input_schema: Annotated[dict[str, Any], Field(alias="inputSchema")]


class ListToolsRequestParams(PaginatedRequestParams):
    pass


class ListToolsResult(Result):
    tools: list[Tool]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class CallToolRequestParams(RequestParams):
    name: str
    arguments: dict[str, Any] | None = None


class CallToolResult(Result):
    content: list[ContentBlock]
    structured_content: Annotated[dict[str, Any] | None, Field(alias="structuredContent")] = None
    is_error: Annotated[bool, Field(alias="isError")] = False
