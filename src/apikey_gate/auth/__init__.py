"""API key authentication: extraction, validation and the gate."""

from apikey_gate.auth.context import RequestContext, extract_headers
from apikey_gate.auth.errors import ErrorMapper
from apikey_gate.auth.extractor import CredentialExtractor
from apikey_gate.auth.gate import ApiKeyGate, AuthenticationGate
from apikey_gate.auth.jwt import ClaimMapping, JWTAuthenticator
from apikey_gate.auth.middleware import (
    ApiKeyGateMiddleware,
    ClaimMiddleware,
    caller_var,
    claimed_identity_var,
    require_api_key,
)
from apikey_gate.auth.outcome import Allowed, AuthenticationOutcome, Denied, DenialReason
from apikey_gate.auth.protocol import Authenticator
from apikey_gate.auth.validator import KeyValidator, StoreKeyValidator

__all__ = [
    "Allowed",
    "ApiKeyGate",
    "ApiKeyGateMiddleware",
    "AuthenticationGate",
    "AuthenticationOutcome",
    "Authenticator",
    "ClaimMapping",
    "ClaimMiddleware",
    "CredentialExtractor",
    "Denied",
    "DenialReason",
    "ErrorMapper",
    "JWTAuthenticator",
    "KeyValidator",
    "RequestContext",
    "StoreKeyValidator",
    "caller_var",
    "claimed_identity_var",
    "extract_headers",
    "require_api_key",
]
