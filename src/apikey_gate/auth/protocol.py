"""Claim-stage protocol: who the request says it is, before the key check."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from apcore import Identity


@runtime_checkable
class Authenticator(Protocol):
    """Upstream stage that claims an identity for ``ClaimMiddleware``.

    The claim is only a reference the gate checks the API key against, so
    an implementation must read its own header and leave the key header
    (``Authorization`` by default) alone. It must not raise on bad input;
    an unverifiable claim is ``None`` and the gate denies with
    ``identity-not-found``. Only ``Identity.id`` reaches the record store.
    """

    def authenticate(self, headers: dict[str, str]) -> Identity | None:
        """Return the claimed identity, or ``None``.

        Args:
            headers: Lowercase header keys mapped to their values.
        """
        ...
