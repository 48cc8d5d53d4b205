"""Resource listing and read payloads."""

from typing import Annotated

from pydantic import Field

from context_gateway.types.base import GatewayModel, PaginatedRequestParams, RequestParams, Result


class Resource(GatewayModel):
    """A known resource that the gateway is capable of reading."""

    uri: str
    name: str
    description: str | None = None
    mime_type: Annotated[str | None, Field(alias="mimeType")] = None


class ResourceContents(GatewayModel):
    uri: str
    mime_type: Annotated[str | None, Field(alias="mimeType")] = None


class TextResourceContents(ResourceContents):
    text: str


class BlobResourceContents(ResourceContents):
    blob: str  # base64 encoded


class ListResourcesRequestParams(PaginatedRequestParams):
    pass


class ListResourcesResult(Result):
    resources: list[Resource]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class ReadResourceRequestParams(RequestParams):
    uri: str


class ReadResourceResult(Result):
    contents: list[TextResourceContents | BlobResourceContents]
