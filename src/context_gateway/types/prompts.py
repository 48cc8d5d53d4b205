"""Prompt template listing and rendering payloads."""

from typing import Annotated, Literal

from pydantic import Field

from context_gateway.types.base import GatewayModel, PaginatedRequestParams, RequestParams, Result
from context_gateway.types.content import ContentBlock


class PromptArgument(GatewayModel):
    name: str
    description: str | None = None
    required: bool | None = None


class Prompt(GatewayModel):
    """A prompt or prompt template that the gateway offers."""

    name: str
    description: str | None = None
    arguments: list[PromptArgument] | None = None


class PromptMessage(GatewayModel):
    role: Literal["user", "assistant"]
    content: ContentBlock


class ListPromptsRequestParams(PaginatedRequestParams):
    pass


class ListPromptsResult(Result):
    prompts: list[Prompt]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class GetPromptRequestParams(RequestParams):
    name: str
    arguments: dict[str, str] | None = None


class GetPromptResult(Result):
    description: str | None = None
    messages: list[PromptMessage]
