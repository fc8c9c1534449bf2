"""Tests for ClaimMiddleware, ApiKeyGateMiddleware and require_api_key."""

from __future__ import annotations

import json
import logging
from typing import Any
from unittest.mock import AsyncMock

import jwt as pyjwt
import pytest
from apcore import Identity

from apikey_gate.auth.gate import ApiKeyGate
from apikey_gate.auth.jwt import JWTAuthenticator
from apikey_gate.auth.middleware import (
    ApiKeyGateMiddleware,
    ClaimMiddleware,
    caller_var,
    claimed_identity_var,
    extract_headers,
)
from apikey_gate.auth.validator import StoreKeyValidator
from tests.conftest import FailingStore, RecordingStore

SECRET = "test-secret-key"


def _build_scope(
    path: str = "/data",
    headers: list[tuple[bytes, bytes]] | None = None,
    scope_type: str = "http",
    claimed: Identity | None = None,
) -> dict[str, Any]:
    scope: dict[str, Any] = {
        "type": scope_type,
        "path": path,
        "headers": headers or [],
    }
    if claimed is not None:
        scope["state"] = {"claimed_identity": claimed}
    return scope


def _key_header(key: str) -> list[tuple[bytes, bytes]]:
    return [(b"authorization", f"Bearer {key}".encode("latin-1"))]


class _Capture:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def __call__(self, message: dict) -> None:
        self.sent.append(message)

    @property
    def status(self) -> int:
        return self.sent[0]["status"]

    @property
    def body(self) -> dict:
        return json.loads(self.sent[1]["body"])


@pytest.fixture
def gate(store: RecordingStore) -> ApiKeyGate:
    return ApiKeyGate(StoreKeyValidator(store))


class TestGate401:
    async def test_returns_401_without_key(self, gate: ApiKeyGate, u1: Identity):
        app = AsyncMock()
        send = _Capture()
        await ApiKeyGateMiddleware(app, gate)(_build_scope(claimed=u1), AsyncMock(), send)
        assert send.status == 401
        assert [b"www-authenticate", b"Bearer"] in send.sent[0]["headers"]
        app.assert_not_called()

    async def test_returns_401_with_wrong_key(self, gate: ApiKeyGate, u1: Identity):
        app = AsyncMock()
        send = _Capture()
        scope = _build_scope(headers=_key_header("wrong"), claimed=u1)
        await ApiKeyGateMiddleware(app, gate)(scope, AsyncMock(), send)
        assert send.status == 401
        app.assert_not_called()

    async def test_returns_401_without_claim(self, gate: ApiKeyGate):
        app = AsyncMock()
        send = _Capture()
        await ApiKeyGateMiddleware(app, gate)(_build_scope(headers=_key_header("abc123")), AsyncMock(), send)
        assert send.status == 401
        app.assert_not_called()

    async def test_body_identical_for_every_reason(self, gate: ApiKeyGate, u1: Identity):
        failing = ApiKeyGate(StoreKeyValidator(FailingStore()))
        bodies = []
        for mw, scope in [
            (ApiKeyGateMiddleware(AsyncMock(), gate), _build_scope(claimed=u1)),
            (ApiKeyGateMiddleware(AsyncMock(), gate), _build_scope(headers=_key_header("wrong"), claimed=u1)),
            (ApiKeyGateMiddleware(AsyncMock(), gate), _build_scope(headers=_key_header("abc123"))),
            (ApiKeyGateMiddleware(AsyncMock(), failing), _build_scope(headers=_key_header("abc123"), claimed=u1)),
        ]:
            send = _Capture()
            await mw(scope, AsyncMock(), send)
            bodies.append(send.body)
        assert all(body == {"error": "Unauthorized", "detail": "Missing or invalid API key"} for body in bodies)


class TestGateAllowed:
    async def test_valid_key_reaches_app_with_caller(self, gate: ApiKeyGate, u1: Identity):
        captured: list[Identity | None] = []

        async def app(scope: Any, receive: Any, send: Any) -> None:
            captured.append(caller_var.get())
            captured.append(scope["state"]["caller"])

        scope = _build_scope(headers=_key_header("abc123"), claimed=u1)
        await ApiKeyGateMiddleware(app, gate)(scope, AsyncMock(), AsyncMock())
        assert [c.id for c in captured] == ["U1", "U1"]

    async def test_caller_reset_after_request(self, gate: ApiKeyGate, u1: Identity):
        scope = _build_scope(headers=_key_header("abc123"), claimed=u1)
        await ApiKeyGateMiddleware(AsyncMock(), gate)(scope, AsyncMock(), AsyncMock())
        assert caller_var.get() is None

    async def test_caller_reset_on_exception(self, gate: ApiKeyGate, u1: Identity):
        async def app(scope: Any, receive: Any, send: Any) -> None:
            raise RuntimeError("boom")

        scope = _build_scope(headers=_key_header("abc123"), claimed=u1)
        with pytest.raises(RuntimeError, match="boom"):
            await ApiKeyGateMiddleware(app, gate)(scope, AsyncMock(), AsyncMock())
        assert caller_var.get() is None


class TestExemptions:
    async def test_health_exempt_by_default(self, gate: ApiKeyGate):
        app = AsyncMock()
        await ApiKeyGateMiddleware(app, gate)(_build_scope(path="/health"), AsyncMock(), AsyncMock())
        app.assert_called_once()

    async def test_custom_exempt_paths(self, gate: ApiKeyGate):
        app = AsyncMock()
        mw = ApiKeyGateMiddleware(app, gate, exempt_paths={"/public"})
        await mw(_build_scope(path="/public"), AsyncMock(), AsyncMock())
        app.assert_called_once()

    async def test_exempt_prefixes(self, gate: ApiKeyGate):
        app = AsyncMock()
        mw = ApiKeyGateMiddleware(app, gate, exempt_prefixes={"/docs"})
        for path in ["/docs", "/docs/api"]:
            app.reset_mock()
            await mw(_build_scope(path=path), AsyncMock(), AsyncMock())
            app.assert_called_once()

    async def test_websocket_passes_through(self, gate: ApiKeyGate):
        app = AsyncMock()
        await ApiKeyGateMiddleware(app, gate)(_build_scope(scope_type="websocket"), AsyncMock(), AsyncMock())
        app.assert_called_once()

    async def test_lifespan_passes_through(self, gate: ApiKeyGate):
        app = AsyncMock()
        await ApiKeyGateMiddleware(app, gate)(_build_scope(scope_type="lifespan"), AsyncMock(), AsyncMock())
        app.assert_called_once()


class TestAuditLogging:
    async def test_denial_logs_warning_with_path_and_reason(
        self, gate: ApiKeyGate, u1: Identity, caplog: pytest.LogCaptureFixture
    ):
        scope = _build_scope(path="/api/data", headers=_key_header("wrong"), claimed=u1)
        with caplog.at_level(logging.WARNING, logger="apikey_gate.auth.middleware"):
            await ApiKeyGateMiddleware(AsyncMock(), gate)(scope, AsyncMock(), _Capture())
        assert any(
            "Authentication failed for /api/data: credential-mismatch" in r.message for r in caplog.records
        )
        assert "wrong" not in caplog.text

    async def test_store_failure_logs_error(self, u1: Identity, caplog: pytest.LogCaptureFixture):
        failing = ApiKeyGate(StoreKeyValidator(FailingStore()))
        scope = _build_scope(path="/api/data", headers=_key_header("abc123"), claimed=u1)
        with caplog.at_level(logging.WARNING, logger="apikey_gate.auth.middleware"):
            await ApiKeyGateMiddleware(AsyncMock(), failing)(scope, AsyncMock(), _Capture())
        records = [r for r in caplog.records if r.name == "apikey_gate.auth.middleware"]
        assert [r.levelno for r in records] == [logging.ERROR]
        assert "upstream-error" in records[0].getMessage()

    async def test_routine_denial_logs_warning_level(
        self, gate: ApiKeyGate, u1: Identity, caplog: pytest.LogCaptureFixture
    ):
        with caplog.at_level(logging.WARNING, logger="apikey_gate.auth.middleware"):
            await ApiKeyGateMiddleware(AsyncMock(), gate)(_build_scope(claimed=u1), AsyncMock(), _Capture())
        assert [r.levelno for r in caplog.records if r.name == "apikey_gate.auth.middleware"] == [logging.WARNING]

    async def test_success_does_not_log_warning(
        self, gate: ApiKeyGate, u1: Identity, caplog: pytest.LogCaptureFixture
    ):
        scope = _build_scope(headers=_key_header("abc123"), claimed=u1)
        with caplog.at_level(logging.WARNING, logger="apikey_gate.auth.middleware"):
            await ApiKeyGateMiddleware(AsyncMock(), gate)(scope, AsyncMock(), AsyncMock())
        assert not any("Authentication failed" in r.message for r in caplog.records)


class TestClaimMiddleware:
    async def test_valid_token_sets_claim(self):
        captured: list[Any] = []

        async def app(scope: Any, receive: Any, send: Any) -> None:
            captured.append(scope["state"]["claimed_identity"])
            captured.append(claimed_identity_var.get())

        token = pyjwt.encode({"sub": "U1"}, SECRET, algorithm="HS256")
        scope = _build_scope(headers=[(b"x-identity-token", token.encode())])
        await ClaimMiddleware(app, JWTAuthenticator(SECRET))(scope, AsyncMock(), AsyncMock())
        assert [c.id for c in captured] == ["U1", "U1"]
        assert claimed_identity_var.get() is None

    async def test_missing_token_passes_without_claim(self):
        app = AsyncMock()
        scope = _build_scope()
        await ClaimMiddleware(app, JWTAuthenticator(SECRET))(scope, AsyncMock(), AsyncMock())
        app.assert_called_once()
        assert scope["state"]["claimed_identity"] is None

    async def test_keeps_existing_state(self):
        scope = _build_scope()
        scope["state"] = {"request_id": "r-1"}
        await ClaimMiddleware(AsyncMock(), JWTAuthenticator(SECRET))(scope, AsyncMock(), AsyncMock())
        assert scope["state"]["request_id"] == "r-1"

    async def test_claim_then_gate(self, gate: ApiKeyGate):
        captured: list[Identity | None] = []

        async def app(scope: Any, receive: Any, send: Any) -> None:
            captured.append(caller_var.get())

        stack = ClaimMiddleware(ApiKeyGateMiddleware(app, gate), JWTAuthenticator(SECRET))
        token = pyjwt.encode({"sub": "U1"}, SECRET, algorithm="HS256")
        headers = [(b"x-identity-token", token.encode()), *_key_header("abc123")]
        await stack(_build_scope(headers=headers), AsyncMock(), AsyncMock())
        assert captured[0] is not None
        assert captured[0].id == "U1"


class TestExtractHeaders:
    def test_extracts_headers_from_scope(self):
        scope = {
            "headers": [
                (b"content-type", b"application/json"),
                (b"authorization", b"Bearer abc"),
            ]
        }
        assert extract_headers(scope) == {"content-type": "application/json", "authorization": "Bearer abc"}

    def test_lowercases_header_keys(self):
        assert "x-custom-header" in extract_headers({"headers": [(b"X-Custom-Header", b"value")]})

    def test_missing_headers_key(self):
        assert extract_headers({}) == {}
