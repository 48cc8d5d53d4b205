"""Content blocks used in tool results and prompt messages."""

from typing import Annotated, Literal

from pydantic import Field

from context_gateway.types.base import GatewayModel
from context_gateway.types.resources import BlobResourceContents, TextResourceContents


class TextContent(GatewayModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(GatewayModel):
    type: Literal["image"] = "image"
    data: str  # base64 encoded
    mime_type: Annotated[str, Field(alias="mimeType")]


class EmbeddedResource(GatewayModel):
    """The contents of a resource, embedded into a prompt or tool call result."""

    type: Literal["resource"] = "resource"
    resource: TextResourceContents | BlobResourceContents


ContentBlock = Annotated[TextContent | ImageContent | EmbeddedResource, Field(discriminator="type")]
