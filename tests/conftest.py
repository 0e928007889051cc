"""
tests.conftest

Shared fixtures: isolated settings/DB per test, an in-memory identity provider,
and an httpx client bound to the ASGI app.
"""

from __future__ import annotations

import itertools
import json
import time
from dataclasses import replace
from typing import Any

import httpx
import pytest
import pytest_asyncio

from camp_portal.api.app import create_app
from camp_portal.auth.external import ProviderUser
from camp_portal.auth.jwt import issue_token
from camp_portal.auth.models import Role
from camp_portal.auth.passwords import hash_password
from camp_portal.db.models import User
from camp_portal.db.repositories.users import UserRepo
from camp_portal.errors import (
    AccountNotFound,
    DuplicateAccount,
    ExternalTokenExpired,
    ExternalTokenInvalid,
    ProviderConfigError,
)
from camp_portal.settings import Settings

TEST_SECRET = "test-signing-secret-0123456789abcdef"
DEFAULT_PASSWORD = "secret123"


class FakeIdentityProvider:
    """
    In-memory stand-in for Firebase Authentication.

    Tokens are opaque strings bound to a uid and that uid's revocation generation.
    """

    def __init__(self) -> None:
        self.users: dict[str, ProviderUser] = {}
        self._tokens: dict[str, tuple[str, int]] = {}
        self._generation: dict[str, int] = {}
        self._ids = itertools.count(1)
        self.fail_claims = False
        self.delay_seconds = 0.0
        self.calls: list[str] = []

    def add_user(self, *, email: str, role: Role | None = None) -> ProviderUser:
        uid = f"uid-{next(self._ids)}"
        claims = {"role": role.value} if role is not None else {}
        user = ProviderUser(uid=uid, email=email, display_name=None, custom_claims=claims)
        self.users[uid] = user
        return user

    def issue(self, uid: str) -> str:
        token = f"idtoken-{uid}-{len(self._tokens)}"
        self._tokens[token] = (uid, self._generation.get(uid, 0))
        return token

    def verify_id_token(self, token: str) -> dict[str, Any]:
        self.calls.append("verify_id_token")
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if token == "expired-token":
            raise ExternalTokenExpired()
        if token == "misconfigured":
            raise ProviderConfigError()
        entry = self._tokens.get(token)
        if entry is None:
            raise ExternalTokenInvalid()
        uid, generation = entry
        if generation != self._generation.get(uid, 0):
            raise ExternalTokenInvalid("Token has been revoked. Please log in again.")
        user = self.users[uid]
        return {"uid": uid, "sub": uid, "email": user.email, **user.custom_claims}

    def create_user(self, *, email: str, password: str, display_name: str | None) -> ProviderUser:
        self.calls.append("create_user")
        if any(u.email == email for u in self.users.values()):
            raise DuplicateAccount("Email already registered.")
        user = self.add_user(email=email)
        user = replace(user, display_name=display_name)
        self.users[user.uid] = user
        return user

    def set_custom_claims(self, uid: str, claims: dict[str, Any] | None) -> None:
        self.calls.append("set_custom_claims")
        if self.fail_claims:
            raise ProviderConfigError()
        if uid not in self.users:
            raise AccountNotFound()
        self.users[uid] = replace(self.users[uid], custom_claims=dict(claims or {}))

    def revoke_refresh_tokens(self, uid: str) -> None:
        self.calls.append("revoke_refresh_tokens")
        if uid not in self.users:
            raise AccountNotFound()
        self._generation[uid] = self._generation.get(uid, 0) + 1

    def get_user(self, uid: str) -> ProviderUser:
        try:
            return self.users[uid]
        except KeyError as e:
            raise AccountNotFound() from e


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        jwt_secret=TEST_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'camp.db'}",
        bcrypt_rounds=4,
        log_level="WARNING",
        log_format="json",
    )


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest_asyncio.fixture
async def app(settings: Settings, provider: FakeIdentityProvider):
    app = create_app(settings=settings, identity_provider=provider)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def create_account(
    app,
    *,
    email: str,
    password: str = DEFAULT_PASSWORD,
    role: Role = Role.parent,
    external_uid: str | None = None,
) -> User:
    async with app.state.sessionmaker() as session:
        user = await UserRepo(session).create(
            email=email,
            password_hash=hash_password(password, rounds=4),
            first_name="Test",
            last_name="User",
            role=role,
            external_uid=external_uid,
        )
        await session.commit()
        return user


async def load_account(app, email: str) -> User | None:
    async with app.state.sessionmaker() as session:
        return await UserRepo(session).get_by_email(email)


def local_token_for(app, user: User) -> str:
    return issue_token(
        cfg=app.state.jwt_cfg,
        subject=str(user.id),
        role=user.role,
        email=user.email,
        token_version=user.token_version,
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def logged_events(caplog) -> list[dict[str, Any]]:
    """Events rendered by the app's JSON log pipeline during the test body."""
    return [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name.startswith("camp_portal")
    ]
