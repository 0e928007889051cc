"""
tests.test_logging

Structured logs never carry credentials.

Responsibilities:
- Credential keys are redacted before rendering.
- Exception tracebacks are rendered without frame locals.
- Auth transitions are logged per request without the raw bearer token.
"""

from __future__ import annotations

import json
import logging
import sys

import httpx
import pytest

from camp_portal.auth.models import Role
from camp_portal.observability.logging import _format_exception, _redact_credentials
from camp_portal.services import accounts as accounts_module
from tests.conftest import bearer, create_account, local_token_for, logged_events

PLAINTEXT = "plaintext-Secret-42"


def test_credential_keys_are_redacted() -> None:
    event = {
        "event": "auth.rejected",
        "token": "eyJhbGciOi...",
        "password": "secret1",
        "reset_token": "abc",
        "subject": "u-1",
    }
    out = _redact_credentials(None, "info", dict(event))

    assert out["token"] == out["password"] == out["reset_token"] == "[redacted]"
    assert out["subject"] == "u-1"
    assert out["event"] == "auth.rejected"


def test_exception_frames_carry_no_locals() -> None:
    def _hash(password: str) -> None:
        raise RuntimeError("hashing backend unavailable")

    try:
        _hash(PLAINTEXT)
    except RuntimeError:
        exc_info = sys.exc_info()

    out = _format_exception(None, "error", {"event": "boom", "exc_info": exc_info})

    assert "exc_info" not in out
    [stack] = out["exception"]
    assert stack["exc_type"] == "RuntimeError"
    assert stack["frames"]
    assert all(not frame.get("locals") for frame in stack["frames"])
    assert PLAINTEXT not in json.dumps(out, default=str)


@pytest.mark.asyncio
async def test_unhandled_error_is_logged_without_request_secrets(app, caplog, monkeypatch) -> None:
    async def _unavailable(password: str, *, rounds: int) -> str:
        raise RuntimeError("hashing backend unavailable")

    monkeypatch.setattr(accounts_module, "hash_password_async", _unavailable)
    caplog.set_level(logging.INFO)

    # The error handler answers, then the exception is re-raised to the server.
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post(
            "/api/auth/register",
            json={
                "firstName": "Ada",
                "lastName": "Camper",
                "email": "a@x.com",
                "password": PLAINTEXT,
            },
        )

    assert r.status_code == 500
    assert r.json() == {"error": "An unexpected server error occurred."}
    assert PLAINTEXT not in r.text

    [event] = [e for e in logged_events(caplog) if e["event"] == "request.unhandled_exception"]
    assert event["level"] == "error"
    assert event["exception"][0]["exc_type"] == "RuntimeError"
    assert PLAINTEXT not in caplog.text


@pytest.mark.asyncio
async def test_auth_transitions_are_logged_without_the_token(app, client, caplog) -> None:
    admin = await create_account(app, email="admin@x.com", role=Role.admin)
    parent = await create_account(app, email="p@x.com")
    admin_token = local_token_for(app, admin)
    parent_token = local_token_for(app, parent)
    caplog.set_level(logging.DEBUG)

    assert (await client.get("/api/admin/users", headers=bearer(admin_token))).status_code == 200
    assert (await client.get("/api/admin/users", headers=bearer(parent_token))).status_code == 403

    events = logged_events(caplog)
    names = [e["event"] for e in events]
    assert names.count("auth.credential_extracted") == 2
    assert names.count("auth.principal_resolved") == 2

    authorized = [e for e in events if e["event"] == "auth.authorized"]
    rejected = [e for e in events if e["event"] == "auth.rejected"]
    assert [e["subject"] for e in authorized] == [str(admin.id)]
    assert [(e["subject"], e["reason"], e["status"]) for e in rejected] == [
        (str(parent.id), "insufficient_role", 403)
    ]
    assert all(e["request_id"] for e in authorized + rejected)

    for token in (admin_token, parent_token):
        assert token not in caplog.text


# --- Module Notes -----------------------------------------------------------
# `caplog` sees the rendered JSON lines, so these tests run the same processor
# chain as a deployment (redaction and exception rendering included).
