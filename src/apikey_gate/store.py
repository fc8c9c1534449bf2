"""Record store contract and an in-memory reference implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import TypeAdapter

from apikey_gate.records import IdentityRecord, RecordFilter

logger = logging.getLogger(__name__)

_RECORD_LIST = TypeAdapter(list[IdentityRecord])


class StoreError(Exception):
    """Raised by a record store when a lookup cannot be completed."""


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for identity record lookups.

    ``find_one`` returns ``None`` when nothing matches. Any exception it
    raises is treated as a transport or storage failure.
    """

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        """Return the first record matching ``filter``, or ``None``."""
        ...


class InMemoryRecordStore:
    """Record store backed by a dict keyed on identity reference."""

    def __init__(self, records: Iterable[IdentityRecord] = ()) -> None:
        self._records: dict[str, IdentityRecord] = {}
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: IdentityRecord) -> None:
        """Insert or replace the record for ``record.id``."""
        self._records[record.id] = record

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        record = self._records.get(filter.identity_ref)
        if record is not None and filter.matches(record):
            return record
        return None


def load_records(path: Path | str) -> list[IdentityRecord]:
    """Load identity records from a JSON file.

    The file holds a list of objects shaped like ``IdentityRecord``.

    Raises:
        OSError: The file cannot be read.
        json.JSONDecodeError: The file is not valid JSON.
        pydantic.ValidationError: An entry does not describe a record.
    """
    data = json.loads(Path(path).read_text())
    records = _RECORD_LIST.validate_python(data)
    logger.debug("Loaded %d identity record(s) from %s", len(records), path)
    return records
