"""AuthenticationGate: extraction + validation → allow/deny decision."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import anyio

from apikey_gate.auth.context import RequestContext
from apikey_gate.auth.extractor import CredentialExtractor
from apikey_gate.auth.outcome import Allowed, AuthenticationOutcome, Denied, DenialReason
from apikey_gate.auth.validator import KeyValidator

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[BaseException, RequestContext], None]


@runtime_checkable
class AuthenticationGate(Protocol):
    """Protocol for per-request authentication decisions."""

    async def authenticate(self, context: RequestContext) -> AuthenticationOutcome:
        """Decide whether the request may proceed.

        On ``Allowed`` the context carries the resolved identity as ``caller``.
        On ``Denied`` the context is left untouched.
        """
        ...


def _identity_ref(claimed: Any) -> str:
    return str(getattr(claimed, "id", claimed))


class ApiKeyGate:
    """Secondary-factor gate checking a header API key against the claimed identity.

    Args:
        validator: ``KeyValidator`` used to confirm the key.
        extractor: Reads the key from the request headers.
            Defaults to ``Authorization: Bearer <key>``.
        timeout: Seconds allowed for the validator round trip. ``None`` waits
            indefinitely.
        error_reporter: Called with the exception and context whenever the
            validator fails.
    """

    def __init__(
        self,
        validator: KeyValidator,
        *,
        extractor: CredentialExtractor | None = None,
        timeout: float | None = None,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._validator = validator
        self._extractor = extractor or CredentialExtractor()
        self._timeout = timeout
        self._error_reporter = error_reporter

    async def authenticate(self, context: RequestContext) -> AuthenticationOutcome:
        claimed = context.claimed_identity
        if claimed is None:
            return self._deny(context, DenialReason.IDENTITY_NOT_FOUND)

        credential = self._extractor.extract_from(context.headers)
        if credential is None:
            return self._deny(context, DenialReason.MISSING_CREDENTIAL)
        if not credential:
            return self._deny(context, DenialReason.CREDENTIAL_MISMATCH)

        identity_ref = _identity_ref(claimed)
        try:
            with anyio.fail_after(self._timeout):
                identity = await self._validator.validate(credential, identity_ref)
        except Exception as exc:
            logger.error(
                "API key lookup failed for identity %s on %s: %s",
                identity_ref,
                context.path or "<unknown>",
                type(exc).__name__,
            )
            self._report(exc, context)
            return Denied(DenialReason.UPSTREAM_ERROR, error=exc)

        if identity is None:
            return self._deny(context, DenialReason.CREDENTIAL_MISMATCH)

        context.caller = identity
        return Allowed(identity)

    def _report(self, exc: Exception, context: RequestContext) -> None:
        # The exception text may echo the presented key; only its type is logged.
        if self._error_reporter is None:
            return
        try:
            self._error_reporter(exc, context)
        except Exception as reporter_exc:
            logger.error("Error reporter failed on %s: %s", context.path or "<unknown>", type(reporter_exc).__name__)

    @staticmethod
    def _deny(context: RequestContext, reason: DenialReason) -> Denied:
        logger.debug("Denied %s: %s", context.path or "<unknown>", reason.value)
        return Denied(reason)
