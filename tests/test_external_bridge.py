"""
tests.test_external_bridge

External identity bridge behavior against an in-memory provider, plus the
Firebase SDK error translation.

Responsibilities:
- Role claims map onto the shared `Principal`.
- Role grants obey the escalation guard and always revoke sessions.
- Partial registration failures and provider timeouts surface as documented.
"""

from __future__ import annotations

from dataclasses import replace

import pytest
from firebase_admin import auth as firebase_auth

from camp_portal.auth.external import (
    ExternalIdentityBridge,
    FirebaseIdentityProvider,
    check_role_grant,
)
from camp_portal.auth.models import AuthScheme, Principal, Role
from camp_portal.errors import (
    AccountNotFound,
    DuplicateAccount,
    ExternalTokenExpired,
    ExternalTokenInvalid,
    PermissionDenied,
    ProviderConfigError,
)
from tests.conftest import FakeIdentityProvider


def _actor(role: Role) -> Principal:
    return Principal(subject=f"{role.value}-uid", role=role, scheme=AuthScheme.external)


@pytest.mark.asyncio
async def test_verify_maps_claims_to_principal(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    user = provider.add_user(email="staff@x.com", role=Role.staff)

    principal = await bridge.verify_external_token(provider.issue(user.uid))

    assert principal.subject == user.uid
    assert principal.role is Role.staff
    assert principal.email == "staff@x.com"
    assert principal.scheme is AuthScheme.external


@pytest.mark.asyncio
async def test_missing_or_unknown_role_claim_is_lowest_tier(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    plain = provider.add_user(email="p@x.com")
    odd = provider.add_user(email="o@x.com")
    provider.users[odd.uid] = replace(odd, custom_claims={"role": "counselor"})

    assert (await bridge.verify_external_token(provider.issue(plain.uid))).role is Role.parent
    assert (await bridge.verify_external_token(provider.issue(odd.uid))).role is Role.parent


@pytest.mark.asyncio
async def test_verify_errors_propagate(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    with pytest.raises(ExternalTokenExpired):
        await bridge.verify_external_token("expired-token")
    with pytest.raises(ExternalTokenInvalid):
        await bridge.verify_external_token("not-a-token")
    with pytest.raises(ProviderConfigError):
        await bridge.verify_external_token("misconfigured")


@pytest.mark.asyncio
async def test_slow_provider_times_out(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider, timeout_seconds=0.05)
    user = provider.add_user(email="slow@x.com")
    token = provider.issue(user.uid)
    provider.delay_seconds = 0.5

    with pytest.raises(ProviderConfigError):
        await bridge.verify_external_token(token)


@pytest.mark.parametrize("actor", [Role.parent, Role.staff])
def test_below_admin_cannot_grant_roles(actor: Role) -> None:
    with pytest.raises(PermissionDenied):
        check_role_grant(acting=_actor(actor), role=Role.staff)


def test_only_superadmin_grants_superadmin() -> None:
    with pytest.raises(PermissionDenied):
        check_role_grant(acting=_actor(Role.admin), role=Role.superadmin)
    check_role_grant(acting=_actor(Role.admin), role=Role.admin)
    check_role_grant(acting=_actor(Role.superadmin), role=Role.superadmin)
    with pytest.raises(PermissionDenied):
        check_role_grant(acting=None, role=Role.parent)


@pytest.mark.asyncio
async def test_assign_role_sets_claim_and_revokes_sessions(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    target = provider.add_user(email="t@x.com")
    old_token = provider.issue(target.uid)

    result = await bridge.assign_role(
        target_id=target.uid, role=Role.staff, acting=_actor(Role.superadmin)
    )

    assert result.sessions_revoked
    assert provider.calls[-2:] == ["set_custom_claims", "revoke_refresh_tokens"]
    with pytest.raises(ExternalTokenInvalid):
        await bridge.verify_external_token(old_token)
    fresh = await bridge.verify_external_token(provider.issue(target.uid))
    assert fresh.role is Role.staff


@pytest.mark.asyncio
async def test_rejected_grant_touches_nothing(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    target = provider.add_user(email="t@x.com")

    with pytest.raises(PermissionDenied):
        await bridge.assign_role(
            target_id=target.uid, role=Role.superadmin, acting=_actor(Role.admin)
        )

    assert provider.calls == []
    assert dict(provider.users[target.uid].custom_claims) == {}


@pytest.mark.asyncio
async def test_assign_role_unknown_target(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    with pytest.raises(AccountNotFound):
        await bridge.assign_role(target_id="nope", role=Role.staff, acting=_actor(Role.admin))


@pytest.mark.asyncio
async def test_create_with_role(provider: FakeIdentityProvider) -> None:
    bridge = ExternalIdentityBridge(provider)
    identity = await bridge.create_with_role(email="new@x.com", password="secret1")

    assert identity.role_assigned
    assert identity.role is Role.parent
    assert await bridge.get_claims(identity.uid) == {"role": "parent"}

    with pytest.raises(DuplicateAccount):
        await bridge.create_with_role(email="new@x.com", password="secret1")


@pytest.mark.asyncio
async def test_create_with_role_reports_incomplete_claim_step(
    provider: FakeIdentityProvider,
) -> None:
    bridge = ExternalIdentityBridge(provider)
    provider.fail_claims = True

    identity = await bridge.create_with_role(email="half@x.com", password="secret1", role=Role.staff)

    # The identity exists but carries no role claim, so it reads as the lowest tier.
    assert not identity.role_assigned
    assert identity.role is Role.parent
    assert identity.uid in provider.users
    token = provider.issue(identity.uid)
    assert (await bridge.verify_external_token(token)).role is Role.parent


# --- Firebase SDK error translation ------------------------------------------


def _firebase(monkeypatch: pytest.MonkeyPatch, name: str, exc: Exception) -> FirebaseIdentityProvider:
    def _raise(*args, **kwargs):
        raise exc

    monkeypatch.setattr(firebase_auth, name, _raise)
    return FirebaseIdentityProvider(app=None)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "exc, expected",
    [
        (firebase_auth.ExpiredIdTokenError("expired", cause=None), ExternalTokenExpired),
        (firebase_auth.RevokedIdTokenError("revoked"), ExternalTokenInvalid),
        (firebase_auth.UserDisabledError("disabled"), ExternalTokenInvalid),
        (firebase_auth.InvalidIdTokenError("bad"), ExternalTokenInvalid),
        (firebase_auth.CertificateFetchError("certs", cause=None), ProviderConfigError),
        (ValueError("no project id"), ProviderConfigError),
    ],
)
def test_verify_id_token_error_mapping(
    monkeypatch: pytest.MonkeyPatch, exc: Exception, expected: type[Exception]
) -> None:
    fb = _firebase(monkeypatch, "verify_id_token", exc)
    with pytest.raises(expected):
        fb.verify_id_token("token")


def test_create_user_error_mapping(monkeypatch: pytest.MonkeyPatch) -> None:
    fb = _firebase(
        monkeypatch,
        "create_user",
        firebase_auth.EmailAlreadyExistsError("exists", cause=None, http_response=None),
    )
    with pytest.raises(DuplicateAccount):
        fb.create_user(email="a@x.com", password="secret1", display_name=None)


def test_missing_user_error_mapping(monkeypatch: pytest.MonkeyPatch) -> None:
    fb = _firebase(monkeypatch, "get_user", firebase_auth.UserNotFoundError("missing"))
    with pytest.raises(AccountNotFound):
        fb.get_user("uid-1")
