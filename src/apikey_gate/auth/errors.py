"""Denial → HTTP response payload mapping."""

from __future__ import annotations

from typing import Any

from apikey_gate.auth.outcome import Denied, DenialReason


class ErrorMapper:
    """Maps denials to the body and status sent to the requester.

    Every reason produces the same payload. Callers learn that the request
    was refused, never whether the identity exists or the store failed.
    """

    status_code = 401

    _BODY: dict[str, Any] = {
        "error": "Unauthorized",
        "detail": "Missing or invalid API key",
    }

    def to_response_body(self, denied: Denied) -> dict[str, Any]:
        return dict(self._BODY)

    def is_fault(self, denied: Denied) -> bool:
        """Whether the denial comes from a failure rather than a routine rejection."""
        return denied.reason is DenialReason.UPSTREAM_ERROR
