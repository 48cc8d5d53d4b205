"""Core protocol model bases shared by every exchange and result type."""

from typing import Annotated, Any, Final

from pydantic import BaseModel, ConfigDict, Field

LATEST_PROTOCOL_VERSION: Final[str] = "2025-11-25"

SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = (
    "2024-11-05",
    "2025-03-26",
    "2025-06-18",
    LATEST_PROTOCOL_VERSION,
)

ProgressToken = str | int


class GatewayModel(BaseModel):
    """Base class for protocol payload types. Allows extra fields for forward compatibility."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class RequestMeta(GatewayModel):
    progress_token: Annotated[ProgressToken | None, Field(alias="progressToken")] = None


class RequestParams(GatewayModel):
    """Base class for request parameters with _meta support."""

    meta: Annotated[RequestMeta | None, Field(alias="_meta")] = None


class PaginatedRequestParams(RequestParams):
    cursor: str | None = None


class NotificationParams(GatewayModel):
    meta: Annotated[dict[str, Any] | None, Field(alias="_meta")] = None


class Result(GatewayModel):
    """Base class for results with _meta support."""

    meta: Annotated[dict[str, Any] | None, Field(alias="_meta")] = None


class EmptyResult(Result):
    """A response that indicates success but carries no data."""
