"""JWT-based claim stage: decodes an identity token into an ``Identity``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt as pyjwt
from apcore import Identity

from apikey_gate.auth.protocol import Authenticator
from apikey_gate.constants import DEFAULT_IDENTITY_HEADER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimMapping:
    """Maps JWT claims to ``Identity`` fields.

    Attributes:
        id_claim: Claim used as ``Identity.id``.
        type_claim: Claim used as ``Identity.type``.
        roles_claim: Claim used as ``Identity.roles`` (expects a list).
    """

    id_claim: str = "sub"
    type_claim: str = "type"
    roles_claim: str = "roles"


class JWTAuthenticator:
    """Claims an identity from a signed JWT carried in a request header.

    The token lives in its own header so the ``Authorization`` header stays
    free for the API key.

    Args:
        key: Secret key or public key for verification.
        header: Header carrying the token.
        scheme: Optional scheme word in front of the token (e.g. ``"Bearer"``).
        algorithms: Allowed JWT algorithms.
        audience: Expected ``aud`` claim (optional).
        issuer: Expected ``iss`` claim (optional).
        claim_mapping: Maps JWT claims to Identity fields.
    """

    def __init__(
        self,
        key: str,
        *,
        header: str = DEFAULT_IDENTITY_HEADER,
        scheme: str | None = None,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        issuer: str | None = None,
        claim_mapping: ClaimMapping | None = None,
    ) -> None:
        self._key = key
        self._header = header.lower()
        self._scheme = f"{scheme.lower()} " if scheme else None
        self._algorithms = algorithms or ["HS256"]
        self._audience = audience
        self._issuer = issuer
        self._claim_mapping = claim_mapping or ClaimMapping()

    def authenticate(self, headers: dict[str, str]) -> Identity | None:
        """Decode the identity token from headers and return the claimed Identity."""
        token = headers.get(self._header, "")
        if self._scheme is not None:
            if not token.lower().startswith(self._scheme):
                return None
            token = token[len(self._scheme) :]

        token = token.strip()
        if not token:
            return None

        payload = self._decode_token(token)
        if payload is None:
            return None

        return self._payload_to_identity(payload)

    def _decode_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a JWT token. Returns None on any error."""
        try:
            kwargs: dict[str, Any] = {
                "jwt": token,
                "key": self._key,
                "algorithms": self._algorithms,
                "options": {"require": [self._claim_mapping.id_claim]},
            }
            if self._audience is not None:
                kwargs["audience"] = self._audience
            if self._issuer is not None:
                kwargs["issuer"] = self._issuer

            return pyjwt.decode(**kwargs)
        except pyjwt.InvalidTokenError:
            logger.debug("Identity token rejected", exc_info=True)
            return None

    def _payload_to_identity(self, payload: dict[str, Any]) -> Identity | None:
        mapping = self._claim_mapping
        identity_id = payload.get(mapping.id_claim)
        if identity_id is None:
            return None

        raw_roles = payload.get(mapping.roles_claim)
        roles = tuple(str(r) for r in raw_roles) if isinstance(raw_roles, list) else ()

        return Identity(
            id=str(identity_id),
            type=str(payload.get(mapping.type_claim, "user")),
            roles=roles,
            attrs={},
        )


# Verify protocol compliance at import time
assert isinstance(JWTAuthenticator.__new__(JWTAuthenticator), Authenticator)
