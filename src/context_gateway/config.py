"""Gateway settings.

All settings can be configured via environment variables with the prefix
CONTEXT_GATEWAY_. For example, CONTEXT_GATEWAY_PORT=9000 sets port=9000.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from context_gateway.types.common import Implementation


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CONTEXT_GATEWAY_",
        env_file=".env",
        extra="ignore",
    )

    # Implementation descriptor
    name: str = "context-gateway"
    version: str = "0.1.0"

    # Network surface
    enable_http: bool = True
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=0, le=65535)
    path: str = "/mcp"

    # Local stream
    enable_stdio: bool = False

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Seconds the HTTP server gets to finish in-flight responses on destroy()
    shutdown_timeout: float = Field(default=5.0, gt=0)

    def implementation(self) -> Implementation:
        return Implementation(name=self.name, version=self.version)
