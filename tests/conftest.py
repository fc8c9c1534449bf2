"""Shared test fixtures for apikey-gate tests."""

from __future__ import annotations

from typing import Any

import anyio
import pytest
from apcore import Identity

from apikey_gate.auth.context import RequestContext
from apikey_gate.records import IdentityRecord, RecordFilter, Tag
from apikey_gate.store import InMemoryRecordStore, StoreError

# ---------------------------------------------------------------------------
# Store doubles
# ---------------------------------------------------------------------------


class RecordingStore(InMemoryRecordStore):
    """In-memory store that remembers every filter it was queried with."""

    def __init__(self, records: Any = ()) -> None:
        super().__init__(records)
        self.queries: list[RecordFilter] = []

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        self.queries.append(filter)
        return await super().find_one(filter)


class FailingStore:
    """Store whose lookups always raise."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or StoreError("connection refused")
        self.calls = 0

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        self.calls += 1
        raise self.error


class SlowStore(InMemoryRecordStore):
    """In-memory store that sleeps before answering."""

    def __init__(self, records: Any = (), delay: float = 1.0) -> None:
        super().__init__(records)
        self.delay = delay

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        await anyio.sleep(self.delay)
        return await super().find_one(filter)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_context(
    authorization: str | None = None,
    claimed: Identity | None = None,
    *,
    path: str = "/whoami",
    extra_headers: dict[str, str] | None = None,
) -> RequestContext:
    """Build a RequestContext with lowercase headers and an optional claim."""
    headers = dict(extra_headers or {})
    if authorization is not None:
        headers["authorization"] = authorization
    context = RequestContext(headers, path=path)
    if claimed is not None:
        context.claimed_identity = claimed
    return context


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def u1_record() -> IdentityRecord:
    return IdentityRecord(
        id="U1",
        roles=("reader",),
        tags=(Tag(name="api-key", value="abc123"), Tag(name="team", value="research")),
    )


@pytest.fixture
def rotating_record() -> IdentityRecord:
    """A service identity holding two live keys during rotation."""
    return IdentityRecord(
        id="svc-ingest",
        type="service",
        tags=(Tag(name="api-key", value="old-key"), Tag(name="api-key", value="new-key")),
    )


@pytest.fixture
def store(u1_record: IdentityRecord, rotating_record: IdentityRecord) -> RecordingStore:
    return RecordingStore([u1_record, rotating_record])


@pytest.fixture
def u1() -> Identity:
    """Claimed identity as established by the upstream stage."""
    return Identity(id="U1", type="user", roles=(), attrs={})


class MalformedRecordStore:
    """Store whose backend returns a document that fails validation.

    The resulting ``ValidationError`` echoes the queried tag value.
    """

    async def find_one(self, filter: RecordFilter) -> IdentityRecord | None:
        return IdentityRecord.model_validate({"id": filter.identity_ref, "tags": [{"value": filter.tag_value}]})
