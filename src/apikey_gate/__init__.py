"""apikey-gate: static API key second-factor authentication for ASGI apps."""

from __future__ import annotations

import asyncio
import logging

from apikey_gate.auth import (
    Allowed,
    ApiKeyGate,
    ApiKeyGateMiddleware,
    AuthenticationGate,
    AuthenticationOutcome,
    Authenticator,
    ClaimMiddleware,
    CredentialExtractor,
    Denied,
    DenialReason,
    JWTAuthenticator,
    KeyValidator,
    RequestContext,
    StoreKeyValidator,
    caller_var,
    require_api_key,
)
from apikey_gate.constants import API_KEY_TAG, DEFAULT_HEADER, DEFAULT_IDENTITY_HEADER, DEFAULT_PREFIX
from apikey_gate.records import IdentityRecord, RecordFilter, Tag
from apikey_gate.server import create_app, run_http
from apikey_gate.store import InMemoryRecordStore, RecordStore, StoreError, load_records

__all__ = [
    # Public API
    "serve",
    "create_app",
    # Gate building blocks
    "ApiKeyGate",
    "AuthenticationGate",
    "CredentialExtractor",
    "KeyValidator",
    "StoreKeyValidator",
    "RequestContext",
    # Outcomes
    "Allowed",
    "Denied",
    "DenialReason",
    "AuthenticationOutcome",
    # ASGI wiring
    "ApiKeyGateMiddleware",
    "ClaimMiddleware",
    "require_api_key",
    "caller_var",
    # Claim stage
    "Authenticator",
    "JWTAuthenticator",
    # Records and stores
    "IdentityRecord",
    "RecordFilter",
    "Tag",
    "RecordStore",
    "InMemoryRecordStore",
    "StoreError",
    "load_records",
    # Constants
    "API_KEY_TAG",
    "DEFAULT_HEADER",
    "DEFAULT_PREFIX",
    "DEFAULT_IDENTITY_HEADER",
]

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def serve(
    store: RecordStore,
    *,
    jwt_key: str,
    host: str = "127.0.0.1",
    port: int = 8000,
    header: str = DEFAULT_HEADER,
    prefix: str = DEFAULT_PREFIX,
    identity_header: str = DEFAULT_IDENTITY_HEADER,
    jwt_algorithm: str = "HS256",
    timeout: float | None = None,
    log_level: str | None = None,
) -> None:
    """Run an HTTP server whose ``/whoami`` route is protected by the API key gate.

    Args:
        store: Record store holding the identities and their keys.
        jwt_key: Key verifying the identity token that establishes the claim.
        host: Host address to bind.
        port: Port to bind.
        header: Header carrying the API key.
        prefix: Literal prefix in front of the key.
        identity_header: Header carrying the identity token.
        jwt_algorithm: Algorithm of the identity token.
        timeout: Seconds allowed for each store lookup.
        log_level: Set the log level for the apikey_gate logger (e.g. "DEBUG", "INFO").
    """
    if not jwt_key:
        raise ValueError("jwt_key must not be empty")
    if log_level is not None:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level.upper() not in valid_levels:
            raise ValueError(f"Unknown log level: {log_level!r}. Valid: {sorted(valid_levels)}")
        logging.getLogger("apikey_gate").setLevel(getattr(logging, log_level.upper()))

    gate = ApiKeyGate(
        StoreKeyValidator(store),
        extractor=CredentialExtractor(header=header, prefix=prefix),
        timeout=timeout,
    )
    claim = JWTAuthenticator(jwt_key, header=identity_header, algorithms=[jwt_algorithm])
    app = create_app(gate, claim_authenticator=claim)

    logger.info(
        "Starting API key gate on %s:%d (key header=%s, identity header=%s)",
        host,
        port,
        header,
        identity_header,
    )
    asyncio.run(run_http(app, host=host, port=port))
