"""Tests for CapabilityRegistry."""

from typing import Any

import pytest

from context_gateway.exceptions import DispatchError, RegistrationError
from context_gateway.registry import CapabilityKind, CapabilityRegistry
from context_gateway.types.json_rpc import INVALID_PARAMS, RESOURCE_NOT_FOUND

ADD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
    "required": ["a", "b"],
}


@pytest.fixture
def registry() -> CapabilityRegistry:
    registry = CapabilityRegistry()

    @registry.tool("add", "Add two numbers", ADD_SCHEMA)
    def add(args: dict[str, Any]) -> float:
        return args["a"] + args["b"]

    return registry


def test_register_and_list_preserves_order(registry: CapabilityRegistry):
    registry.register(CapabilityKind.TOOL, "sub", "Subtract", ADD_SCHEMA, lambda args: args["a"] - args["b"])

    names = [entry.name for entry in registry.list(CapabilityKind.TOOL)]
    assert names == ["add", "sub"]
    assert registry.list("prompt") == []
    assert len(registry) == 2


def test_duplicate_name_is_rejected(registry: CapabilityRegistry):
    with pytest.raises(RegistrationError, match="Duplicate tool registration: 'add'"):
        registry.register("tool", "add", "Again", ADD_SCHEMA, lambda args: 0)


def test_same_name_different_kind_is_allowed(registry: CapabilityRegistry):
    registry.register("prompt", "add", "A prompt called add", None, lambda args: "hi")
    assert registry.get("prompt", "add") is not None
    assert registry.get("tool", "add") is not None


def test_duplicate_resource_uri_is_rejected(registry: CapabilityRegistry):
    registry.register("resource", "one", "", None, lambda args: "1", uri="gateway://thing")
    with pytest.raises(RegistrationError, match="Duplicate resource URI"):
        registry.register("resource", "two", "", None, lambda args: "2", uri="gateway://thing")


def test_register_after_freeze_is_rejected(registry: CapabilityRegistry):
    registry.freeze()
    assert registry.frozen
    with pytest.raises(RegistrationError, match="registry is frozen"):
        registry.register("tool", "late", "Too late", None, lambda args: None)


def test_registration_error_is_a_value_error():
    assert issubclass(RegistrationError, ValueError)


def test_invalid_schema_is_rejected_at_registration():
    registry = CapabilityRegistry()
    with pytest.raises(RegistrationError, match="Invalid input schema for tool 'bad'"):
        registry.register("tool", "bad", "", {"type": 12}, lambda args: None)


def test_missing_schema_defaults_to_empty_object(registry: CapabilityRegistry):
    entry = registry.register("tool", "noop", "", None, lambda args: None)
    assert entry.input_schema == {"type": "object", "properties": {}}


def test_find_resource_unknown_uri(registry: CapabilityRegistry):
    with pytest.raises(DispatchError) as excinfo:
        registry.find_resource("gateway://missing")
    assert excinfo.value.code == RESOURCE_NOT_FOUND


@pytest.mark.anyio
async def test_dispatch_sync_handler(registry: CapabilityRegistry):
    assert await registry.dispatch("tool", "add", {"a": 2, "b": 3}) == 5


@pytest.mark.anyio
async def test_dispatch_async_handler_with_context():
    registry = CapabilityRegistry()
    seen: list[Any] = []

    @registry.tool("whoami")
    async def whoami(args: dict[str, Any], ctx: Any) -> str:
        seen.append(ctx)
        return "me"

    assert registry.get("tool", "whoami").accepts_context  # type: ignore[union-attr]
    assert await registry.dispatch("tool", "whoami", None, context="the-context") == "me"
    assert seen == ["the-context"]


@pytest.mark.anyio
async def test_dispatch_unknown_name(registry: CapabilityRegistry):
    with pytest.raises(DispatchError) as excinfo:
        await registry.dispatch("tool", "multiply", {"a": 1, "b": 2})
    assert excinfo.value.code == INVALID_PARAMS
    assert excinfo.value.message == "Tool not found: multiply"


@pytest.mark.anyio
async def test_dispatch_unknown_resource_uses_resource_not_found(registry: CapabilityRegistry):
    with pytest.raises(DispatchError) as excinfo:
        await registry.dispatch("resource", "missing", {})
    assert excinfo.value.code == RESOURCE_NOT_FOUND


@pytest.mark.anyio
async def test_dispatch_invalid_arguments(registry: CapabilityRegistry):
    with pytest.raises(DispatchError) as excinfo:
        await registry.dispatch("tool", "add", {"a": 2})
    assert excinfo.value.code == INVALID_PARAMS
    assert excinfo.value.message.startswith("Invalid arguments for tool add")


@pytest.mark.anyio
async def test_dispatch_does_not_call_handler_on_invalid_arguments():
    registry = CapabilityRegistry()
    calls: list[dict[str, Any]] = []

    @registry.tool("record", "", {"type": "object", "properties": {"x": {"type": "integer"}}})
    def record(args: dict[str, Any]) -> None:
        calls.append(args)

    with pytest.raises(DispatchError):
        await registry.dispatch("tool", "record", {"x": "not-an-int"})
    assert calls == []


@pytest.mark.anyio
async def test_handler_exceptions_propagate(registry: CapabilityRegistry):
    @registry.tool("boom")
    def boom(args: dict[str, Any]) -> None:
        raise RuntimeError("kaput")

    with pytest.raises(RuntimeError, match="kaput"):
        await registry.dispatch("tool", "boom", {})
