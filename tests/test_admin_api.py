"""
tests.test_admin_api

User administration routes (`/api/admin`) and revocation of local tokens.

Responsibilities:
- Role changes take effect on the next token and revoke outstanding ones.
- Deactivation and deletion lock accounts out of strict routes.
- The audit trail records administrative actions.
"""

from __future__ import annotations

import pytest

from camp_portal.auth.jwt import issue_token
from camp_portal.auth.models import Role
from tests.conftest import DEFAULT_PASSWORD, bearer, create_account, local_token_for


@pytest.mark.asyncio
async def test_role_change_revokes_outstanding_tokens(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    target = await create_account(app, email="staff@x.com")
    old_token = local_token_for(app, target)

    r = await client.patch(
        f"/api/admin/users/{target.id}/role",
        headers=bearer(local_token_for(app, root)),
        json={"role": "admin"},
    )
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    r = await client.put("/api/auth/me", headers=bearer(old_token), json={"firstName": "X"})
    assert r.status_code == 401
    assert r.json()["code"] == "token_revoked"

    # Non-strict reads keep trusting the old token, including its stale role, until expiry.
    r = await client.get("/api/auth/me", headers=bearer(old_token))
    assert r.status_code == 200

    r = await client.post(
        "/api/auth/login", json={"email": "staff@x.com", "password": DEFAULT_PASSWORD}
    )
    assert r.status_code == 200
    fresh = r.json()["token"]
    assert r.json()["user"]["role"] == "admin"
    r = await client.get("/api/admin/users", headers=bearer(fresh))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_role_change_is_superadmin_only(app, client) -> None:
    admin = await create_account(app, email="admin@x.com", role=Role.admin)
    target = await create_account(app, email="t@x.com")

    r = await client.patch(
        f"/api/admin/users/{target.id}/role",
        headers=bearer(local_token_for(app, admin)),
        json={"role": "staff"},
    )
    assert r.status_code == 403
    assert r.json()["code"] == "insufficient_role"


@pytest.mark.asyncio
async def test_role_change_input_errors(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    headers = bearer(local_token_for(app, root))

    r = await client.patch(
        "/api/admin/users/00000000-0000-0000-0000-000000000000/role",
        headers=headers,
        json={"role": "staff"},
    )
    assert r.status_code == 404
    assert r.json()["code"] == "account_not_found"

    r = await client.patch(
        f"/api/admin/users/{root.id}/role", headers=headers, json={"role": "counselor"}
    )
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_deactivated_account_is_locked_out(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    target = await create_account(app, email="d@x.com")
    target_token = local_token_for(app, target)
    root_headers = bearer(local_token_for(app, root))

    r = await client.patch(f"/api/admin/users/{target.id}/deactivate", headers=root_headers)
    assert r.status_code == 200
    assert r.json()["deactivated"] is True

    r = await client.post(
        "/api/auth/login", json={"email": "d@x.com", "password": DEFAULT_PASSWORD}
    )
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_credentials"

    r = await client.post(
        "/api/auth/change-password",
        headers=bearer(target_token),
        json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "whatever1"},
    )
    assert r.status_code == 401
    assert r.json()["code"] == "principal_not_found"

    r = await client.patch(f"/api/admin/users/{target.id}/activate", headers=root_headers)
    assert r.status_code == 200
    r = await client.post(
        "/api/auth/login", json={"email": "d@x.com", "password": DEFAULT_PASSWORD}
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_delete_user(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    target = await create_account(app, email="gone@x.com")
    target_token = local_token_for(app, target)
    root_headers = bearer(local_token_for(app, root))

    r = await client.delete(f"/api/admin/users/{target.id}", headers=root_headers)
    assert r.status_code == 200

    r = await client.delete(f"/api/admin/users/{target.id}", headers=root_headers)
    assert r.status_code == 404

    r = await client.put("/api/auth/me", headers=bearer(target_token), json={"firstName": "X"})
    assert r.status_code == 401
    assert r.json()["code"] == "principal_not_found"

    # Reads are not strict, but a deleted account is still an unknown caller, not a 404.
    r = await client.get("/api/auth/me", headers=bearer(target_token))
    assert r.status_code == 401
    assert r.json()["code"] == "principal_not_found"


@pytest.mark.asyncio
async def test_audit_trail_records_role_changes(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    target = await create_account(app, email="t@x.com")
    headers = bearer(local_token_for(app, root))

    for role in ("staff", "admin"):
        r = await client.patch(
            f"/api/admin/users/{target.id}/role", headers=headers, json={"role": role}
        )
        assert r.status_code == 200

    r = await client.get(f"/api/admin/users/{target.id}/audit", headers=headers)
    assert r.status_code == 200
    events = r.json()
    assert [e["eventType"] for e in events] == ["ROLE_CHANGED", "ROLE_CHANGED"]
    assert {e["details"]["to"] for e in events} == {"staff", "admin"}
    assert all(e["actor"] == str(root.id) for e in events)


@pytest.mark.asyncio
async def test_tokens_without_a_version_fail_strict_routes(app, client) -> None:
    root = await create_account(app, email="root@x.com", role=Role.superadmin)
    unversioned = issue_token(cfg=app.state.jwt_cfg, subject=str(root.id), role=Role.superadmin)

    r = await client.get("/api/admin/users", headers=bearer(unversioned))
    assert r.status_code == 401
    assert r.json()["code"] == "token_revoked"
