"""API key verification against the record store."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from apcore import Identity

from apikey_gate.constants import API_KEY_TAG
from apikey_gate.records import RecordFilter
from apikey_gate.store import RecordStore

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValidator(Protocol):
    """Protocol for second-factor key checks on an already claimed identity."""

    async def validate(self, credential: str, claimed_identity_ref: str) -> Identity | None:
        """Confirm ``credential`` belongs to ``claimed_identity_ref``.

        Returns:
            The resolved ``Identity`` on a match, ``None`` otherwise. Store
            failures are raised, never folded into ``None``.
        """
        ...


class StoreKeyValidator:
    """Validates keys with a single ``find_one`` query per call.

    Any one of an identity's ``api-key`` tags matches, so several keys can be
    live at once while a key is being rotated.

    Args:
        store: The record store to query.
        tag_name: Tag name the key is stored under.
    """

    def __init__(self, store: RecordStore, *, tag_name: str = API_KEY_TAG) -> None:
        self._store = store
        self._tag_name = tag_name

    async def validate(self, credential: str, claimed_identity_ref: str) -> Identity | None:
        if not credential:
            return None

        record = await self._store.find_one(
            RecordFilter(
                identity_ref=claimed_identity_ref,
                tag_name=self._tag_name,
                tag_value=credential,
            )
        )
        if record is None:
            logger.debug("No record matched key for identity %s", claimed_identity_ref)
            return None
        return record.to_identity()
