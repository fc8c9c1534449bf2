"""Per-request context enriched by the gate."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from apcore import Identity

from apikey_gate.constants import CALLER_KEY, CLAIMED_IDENTITY_KEY


def extract_headers(scope: Mapping[str, Any]) -> dict[str, str]:
    """Extract headers from an ASGI scope as a lowercase-key dict."""
    result: dict[str, str] = {}
    for key_bytes, value_bytes in scope.get("headers", []):
        result[key_bytes.decode("latin-1").lower()] = value_bytes.decode("latin-1")
    return result


class RequestContext:
    """Mutable carrier for one request's authentication state.

    Wraps a state mapping owned by the host (``scope["state"]`` under ASGI).
    The gate only ever writes the ``caller`` entry.

    Args:
        headers: Lowercase header names mapped to their values.
        state: The host's per-request state mapping. A fresh dict if omitted.
        path: Request path, used for log messages.
    """

    def __init__(
        self,
        headers: Mapping[str, str],
        state: MutableMapping[str, Any] | None = None,
        *,
        path: str = "",
    ) -> None:
        self.headers = dict(headers)
        self.state: MutableMapping[str, Any] = state if state is not None else {}
        self.path = path

    @classmethod
    def from_scope(cls, scope: MutableMapping[str, Any]) -> RequestContext:
        """Build a context over an ASGI scope, creating ``scope["state"]`` if needed."""
        state = scope.setdefault("state", {})
        return cls(extract_headers(scope), state, path=scope.get("path", ""))

    @property
    def claimed_identity(self) -> Identity | None:
        """Identity established by an upstream stage, if any."""
        return self.state.get(CLAIMED_IDENTITY_KEY)

    @claimed_identity.setter
    def claimed_identity(self, identity: Identity | None) -> None:
        self.state[CLAIMED_IDENTITY_KEY] = identity

    @property
    def caller(self) -> Identity | None:
        """Identity resolved by the gate; ``None`` until the gate allows."""
        return self.state.get(CALLER_KEY)

    @caller.setter
    def caller(self, identity: Identity) -> None:
        self.state[CALLER_KEY] = identity
