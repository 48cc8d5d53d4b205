"""Types shared across the handshake and capability payloads."""

from typing import Annotated, Any

from pydantic import ConfigDict, Field

from context_gateway.types.base import GatewayModel


class Implementation(GatewayModel):
    """Describes the name and version of a peer implementation.

    The gateway's own descriptor is supplied once at construction and is
    never mutated afterwards.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    name: str
    version: str
    title: str | None = None
    website_url: Annotated[str | None, Field(alias="websiteUrl")] = None


class ClientCapabilities(GatewayModel):
    experimental: dict[str, Any] | None = None
    roots: dict[str, Any] | None = None
    sampling: dict[str, Any] | None = None
    elicitation: dict[str, Any] | None = None


class ServerCapabilities(GatewayModel):
    experimental: dict[str, Any] | None = None
    logging: dict[str, Any] | None = None
    prompts: dict[str, Any] | None = None
    resources: dict[str, Any] | None = None
    tools: dict[str, Any] | None = None
