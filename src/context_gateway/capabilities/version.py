from context_gateway.registry import CapabilityRegistry
from context_gateway.types.common import Implementation

VERSION_URI = "gateway://version"


def install_version_resource(registry: CapabilityRegistry, implementation: Implementation) -> None:
    @registry.resource(VERSION_URI, name="version", description="Gateway version", mime_type="text/plain")
    def version(args: dict[str, str]) -> str:
        return implementation.version
