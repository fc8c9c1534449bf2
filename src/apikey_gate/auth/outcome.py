"""Authentication outcomes returned by the gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from apcore import Identity


class DenialReason(str, Enum):
    """Why a request was denied."""

    MISSING_CREDENTIAL = "missing-credential"
    IDENTITY_NOT_FOUND = "identity-not-found"
    CREDENTIAL_MISMATCH = "credential-mismatch"
    UPSTREAM_ERROR = "upstream-error"


@dataclass(frozen=True)
class Allowed:
    """The request carries a valid key for its claimed identity."""

    identity: Identity

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """The request must not reach protected logic.

    Attributes:
        reason: Denial category.
        error: The store failure behind an ``UPSTREAM_ERROR`` denial.
    """

    reason: DenialReason
    error: BaseException | None = field(default=None, compare=False)

    @property
    def allowed(self) -> bool:
        return False


AuthenticationOutcome = Union[Allowed, Denied]
