"""
camp_portal.auth.external

External identity bridge (Firebase Authentication).

Responsibilities:
- Define the `IdentityProvider` boundary (blocking calls mirroring the Firebase Admin SDK).
- Implement it over `firebase_admin.auth`, translating SDK errors into our taxonomy.
- Map provider tokens and custom claims into the shared `Principal`/`Role` model.
- Enforce the role-grant rules and revoke sessions after every role change.

Note:
- Provider calls run in worker threads with a bounded timeout. A timed-out call may
  still finish in its thread; its result is dropped.
"""

from __future__ import annotations

import asyncio
import functools
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import exceptions as firebase_exceptions

from camp_portal.auth.models import AuthScheme, Principal, Role
from camp_portal.errors import (
    AccountNotFound,
    CampPortalError,
    ConfigurationError,
    DuplicateAccount,
    ExternalTokenExpired,
    ExternalTokenInvalid,
    InvalidRequest,
    PermissionDenied,
    ProviderConfigError,
)
from camp_portal.observability.logging import get_logger
from camp_portal.settings import Settings

log = get_logger(__name__)

T = TypeVar("T")

DEMO_PROJECT_ID = "demo-project"


@dataclass(frozen=True, slots=True)
class ProviderUser:
    uid: str
    email: str | None
    display_name: str | None = None
    custom_claims: Mapping[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    def verify_id_token(self, token: str) -> dict[str, Any]: ...

    def create_user(
        self, *, email: str, password: str, display_name: str | None
    ) -> ProviderUser: ...

    def set_custom_claims(self, uid: str, claims: dict[str, Any] | None) -> None: ...

    def revoke_refresh_tokens(self, uid: str) -> None: ...

    def get_user(self, uid: str) -> ProviderUser: ...


class FirebaseIdentityProvider:
    """
    `IdentityProvider` backed by a firebase_admin App.
    """

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    def verify_id_token(self, token: str) -> dict[str, Any]:
        try:
            # check_revoked makes role changes effective once refresh tokens are revoked.
            return firebase_auth.verify_id_token(token, app=self._app, check_revoked=True)
        except firebase_auth.ExpiredIdTokenError as e:
            raise ExternalTokenExpired() from e
        except firebase_auth.RevokedIdTokenError as e:
            raise ExternalTokenInvalid("Token has been revoked. Please log in again.") from e
        except firebase_auth.UserDisabledError as e:
            raise ExternalTokenInvalid("Account is disabled.") from e
        except firebase_auth.InvalidIdTokenError as e:
            raise ExternalTokenInvalid() from e
        except firebase_auth.CertificateFetchError as e:
            raise ProviderConfigError() from e
        except ValueError as e:
            # Raised by the SDK when no project id can be determined.
            raise ProviderConfigError("Firebase project configuration error.") from e
        except firebase_exceptions.FirebaseError as e:
            raise ProviderConfigError() from e

    def create_user(
        self, *, email: str, password: str, display_name: str | None
    ) -> ProviderUser:
        try:
            record = firebase_auth.create_user(
                email=email, password=password, display_name=display_name, app=self._app
            )
        except firebase_auth.EmailAlreadyExistsError as e:
            raise DuplicateAccount("Email already registered.") from e
        except ValueError as e:
            # Local argument validation (email format, password length).
            raise InvalidRequest(str(e)) from e
        except firebase_exceptions.FirebaseError as e:
            raise ProviderConfigError() from e
        return _to_provider_user(record)

    def set_custom_claims(self, uid: str, claims: dict[str, Any] | None) -> None:
        try:
            firebase_auth.set_custom_user_claims(uid, claims, app=self._app)
        except firebase_auth.UserNotFoundError as e:
            raise AccountNotFound() from e
        except firebase_exceptions.FirebaseError as e:
            raise ProviderConfigError() from e

    def revoke_refresh_tokens(self, uid: str) -> None:
        try:
            firebase_auth.revoke_refresh_tokens(uid, app=self._app)
        except firebase_auth.UserNotFoundError as e:
            raise AccountNotFound() from e
        except firebase_exceptions.FirebaseError as e:
            raise ProviderConfigError() from e

    def get_user(self, uid: str) -> ProviderUser:
        try:
            record = firebase_auth.get_user(uid, app=self._app)
        except firebase_auth.UserNotFoundError as e:
            raise AccountNotFound() from e
        except firebase_exceptions.FirebaseError as e:
            raise ProviderConfigError() from e
        return _to_provider_user(record)


def _to_provider_user(record: Any) -> ProviderUser:
    return ProviderUser(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        custom_claims=dict(record.custom_claims or {}),
    )


def build_firebase_app(settings: Settings) -> firebase_admin.App:
    """
    Initialize (or reuse) the named firebase_admin App.

    Service-account credentials are mandatory in production; elsewhere the app
    falls back to application-default credentials and a demo project id.
    """

    try:
        return firebase_admin.get_app(settings.firebase_app_name)
    except ValueError:
        pass

    if settings.firebase_credentials_json:
        try:
            info = json.loads(settings.firebase_credentials_json)
            cred = credentials.Certificate(info)
        except ValueError as e:
            raise ConfigurationError(f"Invalid Firebase service account: {e}") from e
        project_id = settings.firebase_project_id or info.get("project_id")
        app = firebase_admin.initialize_app(
            cred, options={"projectId": project_id}, name=settings.firebase_app_name
        )
        log.info("firebase.initialized", mode="service_account", project_id=project_id)
        return app

    if settings.env == "prod":
        raise ConfigurationError("CAMP_FIREBASE_CREDENTIALS_JSON is required in production")

    project_id = settings.firebase_project_id or DEMO_PROJECT_ID
    app = firebase_admin.initialize_app(
        credentials.ApplicationDefault(),
        options={"projectId": project_id},
        name=settings.firebase_app_name,
    )
    log.warning("firebase.initialized", mode="default_credentials", project_id=project_id)
    return app


@dataclass(frozen=True, slots=True)
class ExternalIdentity:
    uid: str
    email: str | None
    role: Role
    display_name: str | None
    # False when the identity exists but its role claim could not be set yet.
    role_assigned: bool = True


@dataclass(frozen=True, slots=True)
class RoleAssignment:
    target_id: str
    role: Role
    sessions_revoked: bool


class ExternalIdentityBridge:
    """
    Async facade over an `IdentityProvider`.

    All provider failures surface as `CampPortalError` subclasses.
    """

    def __init__(self, provider: IdentityProvider, *, timeout_seconds: float = 10.0) -> None:
        self._provider = provider
        self._timeout = timeout_seconds

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args, **kwargs)),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            log.error("external.timeout", operation=getattr(fn, "__name__", "call"))
            raise ProviderConfigError("Identity provider did not respond in time.") from e

    async def verify_external_token(self, token: str) -> Principal:
        decoded = await self._call(self._provider.verify_id_token, token)
        uid = decoded.get("uid") or decoded.get("sub")
        if not uid:
            raise ExternalTokenInvalid()
        return Principal(
            subject=str(uid),
            role=Role.parse(decoded.get("role")),
            email=decoded.get("email"),
            scheme=AuthScheme.external,
            claims=dict(decoded),
        )

    async def apply_role(self, target_id: str, role: Role) -> None:
        """
        Set the role claim and revoke refresh tokens. Idempotent, safe to retry.
        """
        await self._call(self._provider.set_custom_claims, target_id, {"role": role.value})
        await self._call(self._provider.revoke_refresh_tokens, target_id)
        log.info("external.role_applied", target_id=target_id, role=role.value)

    async def create_with_role(
        self,
        *,
        email: str,
        password: str,
        role: Role = Role.parent,
        display_name: str | None = None,
    ) -> ExternalIdentity:
        user = await self._call(
            self._provider.create_user,
            email=email,
            password=password,
            display_name=display_name,
        )
        try:
            await self.apply_role(user.uid, role)
        except CampPortalError as e:
            # Two-step, non-atomic: the identity exists and defaults to the lowest tier
            # until `apply_role` is retried.
            log.warning(
                "external.role_assignment_incomplete",
                uid=user.uid,
                role=role.value,
                error=e.error_code,
            )
            return ExternalIdentity(
                uid=user.uid,
                email=user.email,
                role=Role.parent,
                display_name=user.display_name,
                role_assigned=False,
            )
        log.info("external.user_created", uid=user.uid, role=role.value)
        return ExternalIdentity(
            uid=user.uid, email=user.email, role=role, display_name=user.display_name
        )

    async def assign_role(
        self, *, target_id: str, role: Role, acting: Principal
    ) -> RoleAssignment:
        check_role_grant(acting=acting, role=role)
        await self.apply_role(target_id, role)
        log.info(
            "external.role_assigned",
            target_id=target_id,
            role=role.value,
            actor=acting.subject,
        )
        return RoleAssignment(target_id=target_id, role=role, sessions_revoked=True)

    async def get_claims(self, target_id: str) -> dict[str, Any]:
        user = await self._call(self._provider.get_user, target_id)
        return dict(user.custom_claims)

    async def get_user(self, target_id: str) -> ProviderUser:
        return await self._call(self._provider.get_user, target_id)


def check_role_grant(*, acting: Principal | None, role: Role) -> None:
    """
    Only admin-tier and above may change roles; only superadmin may grant superadmin.
    """
    if acting is None or acting.role.rank < Role.admin.rank:
        raise PermissionDenied("Insufficient permissions to update user roles.")
    if role is Role.superadmin and acting.role is not Role.superadmin:
        raise PermissionDenied("Only superadmins can assign superadmin role.")


# --- Module Notes -----------------------------------------------------------
# `check_role_grant` is shared with the local admin routes so both schemes enforce
# the same escalation guard.
