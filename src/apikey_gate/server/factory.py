"""Starlette application assembly with explicit per-route gating."""

from __future__ import annotations

import logging
import time as _time
from collections.abc import Sequence
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import BaseRoute, Route

from apikey_gate.auth.gate import AuthenticationGate
from apikey_gate.auth.middleware import ClaimMiddleware, require_api_key
from apikey_gate.auth.protocol import Authenticator

logger = logging.getLogger(__name__)


async def whoami(request: Request) -> JSONResponse:
    """Return the caller resolved by the gate."""
    caller = request.state.caller
    return JSONResponse({"id": caller.id, "type": caller.type, "roles": list(caller.roles)})


def create_app(
    gate: AuthenticationGate,
    *,
    claim_authenticator: Authenticator | None = None,
    routes: Sequence[BaseRoute] | None = None,
) -> Any:
    """Build the ASGI application.

    ``GET /health`` is open; ``GET /whoami`` requires the gate. Extra
    ``routes`` are appended as given, so callers opt each one in with
    ``require_api_key``.

    Args:
        gate: Gate protecting ``/whoami``.
        claim_authenticator: Upstream stage establishing the claimed identity.
            When given, the application is wrapped in ``ClaimMiddleware``.
        routes: Additional routes.
    """
    start_time = _time.monotonic()

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "uptime_seconds": round(_time.monotonic() - start_time, 1)})

    app_routes: list[BaseRoute] = [
        Route("/health", endpoint=health, methods=["GET"]),
        Route("/whoami", endpoint=require_api_key(whoami, gate), methods=["GET"]),
    ]
    app_routes.extend(routes or ())
    app: Any = Starlette(routes=app_routes)

    if claim_authenticator is not None:
        app = ClaimMiddleware(app, claim_authenticator)
    else:
        logger.warning("No claim stage configured; gated routes will deny every request")

    logger.debug("Built application with %d route(s)", len(app_routes))
    return app
