"""Payloads for the initialization handshake."""

from typing import Annotated

from pydantic import Field

from context_gateway.types.base import RequestParams, Result
from context_gateway.types.common import ClientCapabilities, Implementation, ServerCapabilities


class InitializeRequestParams(RequestParams):
    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ClientCapabilities
    client_info: Annotated[Implementation, Field(alias="clientInfo")]


class InitializeResult(Result):
    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ServerCapabilities
    server_info: Annotated[Implementation, Field(alias="serverInfo")]
    instructions: str | None = None
