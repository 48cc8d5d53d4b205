"""A capability gateway: exposes tools, resources and prompt templates to peers over
JSON-RPC, either on a local stdin/stdout stream or over streamable HTTP sessions.

## Example

```python
import anyio
from context_gateway import CapabilityRegistry, Gateway, Implementation

registry = CapabilityRegistry()

@registry.tool("add", "Add two numbers", {
    "type": "object",
    "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
    "required": ["a", "b"],
})
def add(args):
    return args["a"] + args["b"]

async def main():
    async with Gateway(Implementation(name="demo", version="1.0.0"), registry) as gateway:
        await gateway.start(port=3000)
        await gateway.wait_closed()

anyio.run(main)
```
"""

from context_gateway.capabilities import install_builtin_capabilities
from context_gateway.config import GatewaySettings
from context_gateway.context import RequestContext, ResponseSink
from context_gateway.exceptions import (
    DispatchError,
    GatewayError,
    LifecycleError,
    ProtocolError,
    RegistrationError,
    TransportError,
)
from context_gateway.lifecycle import Gateway
from context_gateway.registry import CapabilityEntry, CapabilityKind, CapabilityRegistry
from context_gateway.server import GatewayServer
from context_gateway.session_manager import SessionManager
from context_gateway.types import Implementation

__all__ = [
    "CapabilityEntry",
    "CapabilityKind",
    "CapabilityRegistry",
    "DispatchError",
    "Gateway",
    "GatewayError",
    "GatewayServer",
    "GatewaySettings",
    "Implementation",
    "LifecycleError",
    "ProtocolError",
    "RegistrationError",
    "RequestContext",
    "ResponseSink",
    "SessionManager",
    "TransportError",
    "install_builtin_capabilities",
]
