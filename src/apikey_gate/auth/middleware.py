"""ASGI middleware wiring the claim stage and the API key gate into a host app."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Any

from apcore import Identity
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import request_response

from apikey_gate.auth.context import RequestContext, extract_headers
from apikey_gate.auth.errors import ErrorMapper
from apikey_gate.auth.gate import AuthenticationGate
from apikey_gate.auth.outcome import Denied
from apikey_gate.auth.protocol import Authenticator
from apikey_gate.constants import DEFAULT_EXEMPT_PATHS

logger = logging.getLogger(__name__)

# Bridge between ASGI middleware and request handlers
claimed_identity_var: ContextVar[Identity | None] = ContextVar("claimed_identity", default=None)
caller_var: ContextVar[Identity | None] = ContextVar("caller", default=None)

__all__ = [
    "ApiKeyGateMiddleware",
    "ClaimMiddleware",
    "caller_var",
    "claimed_identity_var",
    "extract_headers",
    "require_api_key",
]


class ClaimMiddleware:
    """ASGI middleware that records the upstream claimed identity.

    Runs ``authenticator`` on every HTTP request and stores the result in
    ``scope["state"]`` for the gate. It never rejects a request: a missing
    claim is denied later by the gate on the routes that require it.

    Args:
        app: The ASGI application to wrap.
        authenticator: An ``Authenticator`` implementation.
    """

    def __init__(self, app: Any, authenticator: Authenticator) -> None:
        self._app = app
        self._authenticator = authenticator

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self._app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope)
        identity = self._authenticator.authenticate(context.headers)
        context.claimed_identity = identity

        token = claimed_identity_var.set(identity)
        try:
            await self._app(scope, receive, send)
        finally:
            claimed_identity_var.reset(token)


class ApiKeyGateMiddleware:
    """ASGI middleware that runs an ``AuthenticationGate`` and enforces its decision.

    Args:
        app: The ASGI application to protect.
        gate: The gate deciding each request.
        exempt_paths: Exact paths that bypass the gate.
        exempt_prefixes: Path prefixes that bypass the gate.
        error_mapper: Builds the 401 payload for denied requests.
    """

    def __init__(
        self,
        app: Any,
        gate: AuthenticationGate,
        *,
        exempt_paths: set[str] | None = None,
        exempt_prefixes: set[str] | None = None,
        error_mapper: ErrorMapper | None = None,
    ) -> None:
        self._app = app
        self._gate = gate
        self._exempt_paths = exempt_paths if exempt_paths is not None else set(DEFAULT_EXEMPT_PATHS)
        self._exempt_prefixes = exempt_prefixes or set()
        self._error_mapper = error_mapper or ErrorMapper()

    def _is_exempt(self, path: str) -> bool:
        """Check if a path is exempt from the gate."""
        if path in self._exempt_paths:
            return True
        return any(path.startswith(prefix) for prefix in self._exempt_prefixes)

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self._app(scope, receive, send)
            return

        path = scope.get("path", "")
        if self._is_exempt(path):
            await self._app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope)
        outcome = await self._gate.authenticate(context)

        if isinstance(outcome, Denied):
            level = logging.ERROR if self._error_mapper.is_fault(outcome) else logging.WARNING
            logger.log(level, "Authentication failed for %s: %s", path, outcome.reason.value)
            await self._send_401(send, outcome)
            return

        token = caller_var.set(outcome.identity)
        try:
            await self._app(scope, receive, send)
        finally:
            caller_var.reset(token)

    async def _send_401(self, send: Any, denied: Denied) -> None:
        """Send a 401 Unauthorized JSON response."""
        body = json.dumps(self._error_mapper.to_response_body(denied)).encode()
        await send(
            {
                "type": "http.response.start",
                "status": self._error_mapper.status_code,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"www-authenticate", b"Bearer"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})


def require_api_key(
    endpoint: Callable[[Request], Awaitable[Response]],
    gate: AuthenticationGate,
) -> ApiKeyGateMiddleware:
    """Wrap a single Starlette endpoint so it only runs for allowed requests.

    Use the result as the ``endpoint`` of one ``Route``; other routes stay
    unaffected.
    """
    return ApiKeyGateMiddleware(request_response(endpoint), gate, exempt_paths=set())
