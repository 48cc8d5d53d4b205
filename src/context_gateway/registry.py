"""Capability registry: the name -> handler mapping for tools, resources and prompts.

Entries are registered once at startup. The registry is frozen when the
network listener starts, after which it is read-only and safe to share between
concurrently running sessions without locking.
"""

from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import jsonschema

from context_gateway.exceptions import DispatchError, RegistrationError
from context_gateway.types.json_rpc import INVALID_PARAMS, RESOURCE_NOT_FOUND

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class CapabilityKind(str, enum.Enum):
    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


@dataclass(frozen=True)
class CapabilityEntry:
    """A single registered capability.

    ``(kind, name)`` is unique within a registry. Resources additionally carry
    the ``uri`` they are addressed by.
    """

    name: str
    kind: CapabilityKind
    description: str
    input_schema: dict[str, Any]
    handler: Handler
    uri: str | None = None
    mime_type: str | None = None
    accepts_context: bool = field(default=False, compare=False)


def _accepts_context(handler: Handler) -> bool:
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        p
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2 or any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params)


class CapabilityRegistry:
    """Holds every capability the gateway exposes.

    Usage:
        registry = CapabilityRegistry()

        @registry.tool("add", "Add two numbers", {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        })
        def add(args):
            return args["a"] + args["b"]
    """

    def __init__(self) -> None:
        self._entries: dict[CapabilityKind, dict[str, CapabilityEntry]] = {kind: {} for kind in CapabilityKind}
        self._resources_by_uri: dict[str, CapabilityEntry] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject any further registration. Called when the listener starts."""
        if not self._frozen:
            logger.debug("Capability registry frozen with %d entries", len(self))
        self._frozen = True

    def register(
        self,
        kind: CapabilityKind | str,
        name: str,
        description: str,
        schema: dict[str, Any] | None,
        handler: Handler,
        *,
        uri: str | None = None,
        mime_type: str | None = None,
    ) -> CapabilityEntry:
        """Register a capability.

        Raises:
            RegistrationError: if ``(kind, name)`` already exists, a resource
                URI is reused, the schema is not a valid JSON Schema, or the
                registry is frozen.
        """
        kind = CapabilityKind(kind)
        if self._frozen:
            raise RegistrationError(f"Cannot register {kind.value} {name!r}: registry is frozen")
        if name in self._entries[kind]:
            raise RegistrationError(f"Duplicate {kind.value} registration: {name!r}")
        if kind is CapabilityKind.RESOURCE:
            uri = uri or name
            if uri in self._resources_by_uri:
                raise RegistrationError(f"Duplicate resource URI: {uri!r}")

        schema = schema if schema is not None else dict(EMPTY_SCHEMA)
        try:
            jsonschema.validators.validator_for(schema).check_schema(schema)
        except jsonschema.SchemaError as e:
            raise RegistrationError(f"Invalid input schema for {kind.value} {name!r}: {e.message}") from e

        entry = CapabilityEntry(
            name=name,
            kind=kind,
            description=description,
            input_schema=schema,
            handler=handler,
            uri=uri,
            mime_type=mime_type,
            accepts_context=_accepts_context(handler),
        )
        self._entries[kind][name] = entry
        if entry.uri is not None:
            self._resources_by_uri[entry.uri] = entry
        logger.debug("Registered %s %r", kind.value, name)
        return entry

    def tool(self, name: str, description: str = "", schema: dict[str, Any] | None = None) -> Callable[[Handler], Handler]:
        """Decorator to register a tool handler."""

        def decorator(fn: Handler) -> Handler:
            self.register(CapabilityKind.TOOL, name, description, schema, fn)
            return fn

        return decorator

    def resource(
        self,
        uri: str,
        name: str | None = None,
        description: str = "",
        mime_type: str | None = "text/plain",
    ) -> Callable[[Handler], Handler]:
        """Decorator to register a resource handler addressed by ``uri``."""

        def decorator(fn: Handler) -> Handler:
            self.register(CapabilityKind.RESOURCE, name or uri, description, None, fn, uri=uri, mime_type=mime_type)
            return fn

        return decorator

    def prompt(self, name: str, description: str = "", schema: dict[str, Any] | None = None) -> Callable[[Handler], Handler]:
        """Decorator to register a prompt template handler."""

        def decorator(fn: Handler) -> Handler:
            self.register(CapabilityKind.PROMPT, name, description, schema, fn)
            return fn

        return decorator

    def list(self, kind: CapabilityKind | str) -> list[CapabilityEntry]:
        """Entries of ``kind`` in registration order."""
        return list(self._entries[CapabilityKind(kind)].values())

    def get(self, kind: CapabilityKind | str, name: str) -> CapabilityEntry | None:
        return self._entries[CapabilityKind(kind)].get(name)

    def find_resource(self, uri: str) -> CapabilityEntry:
        entry = self._resources_by_uri.get(uri)
        if entry is None:
            raise DispatchError(f"Resource not found: {uri}", code=RESOURCE_NOT_FOUND)
        return entry

    def has(self, kind: CapabilityKind | str) -> bool:
        return bool(self._entries[CapabilityKind(kind)])

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    async def dispatch(
        self,
        kind: CapabilityKind | str,
        name: str,
        args: dict[str, Any] | None,
        context: Any | None = None,
    ) -> Any:
        """Validate ``args`` against the entry's schema and invoke its handler.

        Raises:
            DispatchError: if no such capability exists or ``args`` do not
                match its input schema. Exceptions raised by the handler
                itself propagate unchanged.
        """
        kind = CapabilityKind(kind)
        entry = self._entries[kind].get(name)
        if entry is None:
            code = RESOURCE_NOT_FOUND if kind is CapabilityKind.RESOURCE else INVALID_PARAMS
            raise DispatchError(f"{kind.value.capitalize()} not found: {name}", code=code)

        args = args or {}
        try:
            jsonschema.validate(instance=args, schema=entry.input_schema)
        except jsonschema.ValidationError as e:
            raise DispatchError(f"Invalid arguments for {kind.value} {name}: {e.message}") from e

        call_args: tuple[Any, ...] = (args, context) if entry.accepts_context else (args,)
        result = entry.handler(*call_args)
        if inspect.isawaitable(result):
            result = await result
        return result
