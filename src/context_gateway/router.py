"""Request router for the network surface.

Every HTTP exchange on the gateway endpoint is classified into one of the
:class:`ExchangeRoute` outcomes using three verbs over one path:

- POST creates a session (initialization without a session id) or continues one
- GET subscribes to the session's server push stream
- DELETE terminates the session

Every classification failure is answered with a structured JSON-RPC error
body, never a bare drop, so peers can always tell "must re-initialize"
(code -32000) apart from other failures.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import AsyncIterator, Container
from http import HTTPStatus
from typing import Any

from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from context_gateway.exceptions import ProtocolError
from context_gateway.session_manager import SessionManager
from context_gateway.transport.sink import SinkEvent
from context_gateway.transport.streamable_http import (
    INVALID_SESSION_MESSAGE,
    MCP_SESSION_ID_HEADER,
    NO_VALID_SESSION_MESSAGE,
    AcceptedResponse,
    JSONResult,
    PostResult,
    SSEStream,
)
from context_gateway.types.exchanges import is_initialize_request
from context_gateway.types.json_rpc import INVALID_REQUEST, PARSE_ERROR, JSONRPCMessage, JSONRPCMessageAdapter

logger = logging.getLogger(__name__)

# Maximum size for incoming messages
MAXIMUM_MESSAGE_SIZE = 4 * 1024 * 1024  # 4MB

ALLOWED_METHODS = ("GET", "POST", "DELETE")


class ExchangeRoute(enum.Enum):
    CREATE_SESSION = "create-session"
    REUSE_SESSION = "reuse-session"
    SUBSCRIBE = "subscribe"
    TERMINATE = "terminate-session"
    INVALID = "invalid"


def classify_exchange(
    method: str,
    session_id: str | None,
    body: Any,
    live_sessions: Container[str],
) -> ExchangeRoute:
    """Decide what an inbound exchange is asking for.

    Only POST may omit the session id, and only to initialize. An
    initialization that carries an id, live or not, is never read as resuming
    that session.
    """
    known = session_id is not None and session_id in live_sessions
    match method:
        case "POST":
            initializing = is_initialize_request(body)
            if session_id is None:
                return ExchangeRoute.CREATE_SESSION if initializing else ExchangeRoute.INVALID
            if known and not initializing:
                return ExchangeRoute.REUSE_SESSION
            return ExchangeRoute.INVALID
        case "GET":
            return ExchangeRoute.SUBSCRIBE if known else ExchangeRoute.INVALID
        case "DELETE":
            return ExchangeRoute.TERMINATE if known else ExchangeRoute.INVALID
    return ExchangeRoute.INVALID


def error_body(error: ProtocolError) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": None, "error": error.error.model_dump(exclude_none=True)}


def _sse_event(message: JSONRPCMessage) -> dict[str, str]:
    return {"event": "message", "data": message.model_dump_json(by_alias=True, exclude_none=True)}


class RequestRouter:
    """ASGI app that classifies exchanges and drives the session manager.

    Mounted on the gateway's single endpoint path; it handles every HTTP
    method itself so that even a disallowed verb gets a structured error.
    """

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        try:
            response = await self.route(request)
        except ProtocolError as e:
            logger.debug("Rejected %s %s: %s", request.method, request.url.path, e.message)
            headers = {"Allow": ", ".join(ALLOWED_METHODS)} if e.status_code == HTTPStatus.METHOD_NOT_ALLOWED else None
            response = JSONResponse(error_body(e), status_code=e.status_code, headers=headers)
        await response(scope, receive, send)

    async def route(self, request: Request) -> Response:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        match request.method:
            case "POST":
                return await self._handle_post(request, session_id)
            case "GET":
                return self._handle_get(session_id)
            case "DELETE":
                return await self._handle_delete(session_id)
        raise ProtocolError("Method Not Allowed", status_code=HTTPStatus.METHOD_NOT_ALLOWED)

    async def _handle_post(self, request: Request, session_id: str | None) -> Response:
        raw = await request.body()
        if len(raw) > MAXIMUM_MESSAGE_SIZE:
            raise ProtocolError(
                "Payload Too Large: Message exceeds maximum size",
                code=INVALID_REQUEST,
                status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            )
        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError("Parse error: Invalid JSON", code=PARSE_ERROR) from e
        if isinstance(body, list):
            raise ProtocolError("Invalid Request: batch requests are not supported", code=INVALID_REQUEST)

        route = classify_exchange("POST", session_id, body, self.sessions)
        if route is ExchangeRoute.INVALID:
            raise ProtocolError(NO_VALID_SESSION_MESSAGE)

        try:
            message = JSONRPCMessageAdapter.validate_python(body)
        except ValidationError as e:
            raise ProtocolError("Invalid Request: not a JSON-RPC message", code=INVALID_REQUEST) from e

        if route is ExchangeRoute.CREATE_SESSION:
            session = await self.sessions.create_session()
        else:
            found = self.sessions.get(session_id)
            if found is None:
                raise ProtocolError(NO_VALID_SESSION_MESSAGE)
            session = found

        result = await session.transport.handle_post(message)
        return self._post_response(result)

    def _post_response(self, result: PostResult) -> Response:
        match result:
            case AcceptedResponse():
                return Response(status_code=HTTPStatus.ACCEPTED)

            case JSONResult(body=response_body, session_id=sid):
                return JSONResponse(
                    content=response_body.model_dump(by_alias=True, exclude_none=True),
                    headers={MCP_SESSION_ID_HEADER: sid},
                )

            case SSEStream(first_event=first, event_stream=stream, session_id=sid):

                async def generate() -> AsyncIterator[dict[str, str]]:
                    async with stream:
                        yield _sse_event(first.message)
                        event: SinkEvent
                        async for event in stream:
                            yield _sse_event(event.message)

                return EventSourceResponse(
                    generate(),
                    headers={
                        MCP_SESSION_ID_HEADER: sid,
                        "Cache-Control": "no-cache, no-transform",
                    },
                )

        raise AssertionError(f"Unexpected post result: {result!r}")

    def _handle_get(self, session_id: str | None) -> Response:
        if classify_exchange("GET", session_id, None, self.sessions) is ExchangeRoute.INVALID:
            raise ProtocolError(INVALID_SESSION_MESSAGE)
        session = self.sessions.get(session_id)
        if session is None:
            raise ProtocolError(INVALID_SESSION_MESSAGE)

        transport = session.transport
        reader = transport.open_push_stream()

        async def generate() -> AsyncIterator[dict[str, str]]:
            try:
                async for message in reader:
                    yield _sse_event(message)
            finally:
                transport.release_push_stream(reader)

        return EventSourceResponse(
            generate(),
            headers={
                MCP_SESSION_ID_HEADER: session.id,
                "Cache-Control": "no-cache, no-transform",
            },
        )

    async def _handle_delete(self, session_id: str | None) -> Response:
        if classify_exchange("DELETE", session_id, None, self.sessions) is ExchangeRoute.INVALID:
            raise ProtocolError(INVALID_SESSION_MESSAGE)
        if session_id is None or not await self.sessions.terminate(session_id):
            raise ProtocolError(INVALID_SESSION_MESSAGE)
        return Response(status_code=HTTPStatus.OK)


def create_app(router: RequestRouter, path: str = "/mcp") -> Starlette:
    """Wrap the router in a Starlette app serving ``path``."""
    return Starlette(routes=[Route(path, endpoint=router)])
