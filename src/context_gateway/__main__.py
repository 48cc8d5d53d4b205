"""Run the gateway with its built-in capabilities: ``python -m context_gateway``."""

import sys

import anyio

from context_gateway.capabilities import install_builtin_capabilities
from context_gateway.config import GatewaySettings
from context_gateway.lifecycle import Gateway
from context_gateway.registry import CapabilityRegistry
from context_gateway.utilities.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def serve(settings: GatewaySettings) -> None:
    implementation = settings.implementation()
    registry = install_builtin_capabilities(CapabilityRegistry(), implementation)

    async with Gateway(implementation, registry, settings=settings) as gateway:
        if settings.enable_http:
            await gateway.start()
        if settings.enable_stdio:
            await gateway.connect_stdio()
        await gateway.wait_closed()


def main() -> None:
    settings = GatewaySettings()
    configure_logging(settings.log_level)

    if not (settings.enable_http or settings.enable_stdio):
        logger.error("Nothing to serve: enable at least one of HTTP or stdio")
        sys.exit(2)

    try:
        anyio.run(serve, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
