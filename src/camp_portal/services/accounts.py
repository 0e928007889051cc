"""
camp_portal.services.accounts

Account lifecycle service (transaction owner for the credential store).

Responsibilities:
- Local registration/login with bcrypt-hashed secrets and locally issued tokens.
- Password reset grants, password change and superadmin password assignment.
- Role changes paired with token revocation, deactivation and deletion.
- External-provider registration and role assignment mirrored onto local records.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from camp_portal.auth.external import (
    ExternalIdentity,
    ExternalIdentityBridge,
    RoleAssignment,
    check_role_grant,
)
from camp_portal.auth.jwt import JwtConfig, issue_token
from camp_portal.auth.models import Principal, Role
from camp_portal.auth.passwords import (
    EXTERNAL_MANAGED_HASH,
    hash_password_async,
    verify_password_async,
)
from camp_portal.db.models import User, utcnow
from camp_portal.db.repositories.audit import AuditRepo
from camp_portal.db.repositories.users import UserRepo, parse_user_id
from camp_portal.errors import (
    AccountNotFound,
    DuplicateAccount,
    InvalidCredentials,
    InvalidResetToken,
    PrincipalNotFound,
    ProviderConfigError,
)
from camp_portal.observability.logging import get_logger
from camp_portal.settings import Settings

log = get_logger(__name__)


# Per cost factor; compared against when the account does not exist, so both
# login failure paths cost one bcrypt verification.
_DUMMY_HASHES: dict[int, str] = {}


async def _dummy_hash(rounds: int) -> str:
    if rounds not in _DUMMY_HASHES:
        _DUMMY_HASHES[rounds] = await hash_password_async(secrets.token_hex(16), rounds=rounds)
    return _DUMMY_HASHES[rounds]


@dataclass(frozen=True, slots=True)
class AuthResult:
    token: str
    user: User


@dataclass(frozen=True, slots=True)
class PasswordResetGrant:
    email: str
    token: str
    expires: datetime


class AccountService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        jwt_cfg: JwtConfig,
        bridge: ExternalIdentityBridge | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._jwt_cfg = jwt_cfg
        self._bridge = bridge

        self._users = UserRepo(session)
        self._audit = AuditRepo(session)

    # --- local scheme -------------------------------------------------------

    def issue_for(self, user: User) -> str:
        return issue_token(
            cfg=self._jwt_cfg,
            subject=str(user.id),
            role=user.role,
            email=user.email,
            token_version=user.token_version,
            ttl=timedelta(minutes=self._settings.access_token_ttl_minutes),
        )

    async def register(
        self, *, first_name: str, last_name: str, email: str, password: str
    ) -> AuthResult:
        if await self._users.get_by_email(email) is not None:
            log.warning("account.register_rejected", reason="duplicate")
            raise DuplicateAccount()

        # PasswordHashError propagates: no record is created without a hash.
        password_hash = await hash_password_async(password, rounds=self._settings.bcrypt_rounds)
        user = await self._users.create(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=Role.parent,
        )
        await self._audit.add(
            subject_id=str(user.id), actor=str(user.id), event_type="USER_REGISTERED"
        )
        await self._session.commit()
        log.info("account.registered", user_id=str(user.id))
        return AuthResult(token=self.issue_for(user), user=user)

    async def login(self, *, email: str, password: str) -> AuthResult:
        user = await self._users.get_by_email(email)
        if user is None:
            await verify_password_async(password, await _dummy_hash(self._settings.bcrypt_rounds))
            log.warning("account.login_failed", reason="no_such_user")
            raise InvalidCredentials()

        if not await verify_password_async(password, user.password_hash):
            log.warning("account.login_failed", reason="bad_password", user_id=str(user.id))
            raise InvalidCredentials()

        if user.deactivated:
            log.warning("account.login_failed", reason="deactivated", user_id=str(user.id))
            raise InvalidCredentials()

        log.info("account.logged_in", user_id=str(user.id), role=user.role.value)
        return AuthResult(token=self.issue_for(user), user=user)

    async def request_password_reset(self, *, email: str) -> PasswordResetGrant | None:
        user = await self._users.get_by_email(email)
        if user is None:
            # Callers answer identically either way; only the log records the miss.
            log.info("account.reset_requested", found=False)
            return None

        token = secrets.token_hex(32)
        expires = utcnow() + timedelta(minutes=self._settings.password_reset_ttl_minutes)
        await self._users.set_reset_grant(user.id, token=token, expires=expires)
        await self._audit.add(
            subject_id=str(user.id), actor=str(user.id), event_type="PASSWORD_RESET_REQUESTED"
        )
        await self._session.commit()
        log.info("account.reset_requested", found=True, user_id=str(user.id))
        return PasswordResetGrant(email=user.email, token=token, expires=expires)

    async def complete_password_reset(self, *, email: str, token: str, new_password: str) -> None:
        user = await self._users.get_by_email(email)
        if (
            user is None
            or not user.password_reset_token
            or user.password_reset_expires is None
            or not secrets.compare_digest(user.password_reset_token, token)
        ):
            log.warning("account.reset_failed", reason="token_mismatch")
            raise InvalidResetToken()
        if user.password_reset_expires <= utcnow():
            log.warning("account.reset_failed", reason="expired", user_id=str(user.id))
            raise InvalidResetToken()

        password_hash = await hash_password_async(
            new_password, rounds=self._settings.bcrypt_rounds
        )
        # Clears the grant in the same UPDATE: single use.
        await self._users.set_password_hash(user.id, password_hash)
        await self._audit.add(
            subject_id=str(user.id), actor=str(user.id), event_type="PASSWORD_RESET_COMPLETED"
        )
        await self._session.commit()
        log.info("account.reset_completed", user_id=str(user.id))

    async def change_password(
        self, *, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self._require_user(user_id)
        if not await verify_password_async(current_password, user.password_hash):
            log.warning("account.change_password_failed", user_id=str(user.id))
            raise InvalidCredentials("Current password is incorrect.")

        password_hash = await hash_password_async(
            new_password, rounds=self._settings.bcrypt_rounds
        )
        await self._users.set_password_hash(user.id, password_hash)
        await self._audit.add(
            subject_id=str(user.id), actor=str(user.id), event_type="PASSWORD_CHANGED"
        )
        await self._session.commit()
        log.info("account.password_changed", user_id=str(user.id))

    async def assign_password(self, *, email: str, new_password: str, acting: Principal) -> None:
        user = await self._users.get_by_email(email)
        if user is None:
            raise AccountNotFound()
        password_hash = await hash_password_async(
            new_password, rounds=self._settings.bcrypt_rounds
        )
        await self._users.set_password_hash(user.id, password_hash)
        await self._audit.add(
            subject_id=str(user.id), actor=acting.subject, event_type="PASSWORD_ASSIGNED"
        )
        await self._session.commit()
        log.info("account.password_assigned", user_id=str(user.id), actor=acting.subject)

    async def get_profile(self, user_id: str) -> User:
        # Own record only: a token whose account was deleted no longer names anyone.
        user = await self._users.get(user_id)
        if user is None:
            raise PrincipalNotFound()
        return user

    async def update_profile(
        self,
        *,
        user_id: str,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
    ) -> User:
        user = await self._require_user(user_id)
        await self._users.update_profile(
            user.id, first_name=first_name, last_name=last_name, phone=phone
        )
        await self._session.commit()
        return await self._users.refresh(user)

    # --- administration -----------------------------------------------------

    async def list_users(self) -> list[User]:
        return await self._users.list_all()

    async def change_role(self, *, user_id: str, role: Role, acting: Principal) -> User:
        """
        Set the role and revoke the account's outstanding local tokens in one step.
        """
        check_role_grant(acting=acting, role=role)
        user = await self._require_user(user_id)
        previous = user.role
        await self._users.set_role(user.id, role, revoke_tokens=True)
        await self._audit.add(
            subject_id=str(user.id),
            actor=acting.subject,
            event_type="ROLE_CHANGED",
            details={"from": previous.value, "to": role.value},
        )
        await self._session.commit()
        log.info(
            "account.role_changed",
            user_id=str(user.id),
            previous=previous.value,
            role=role.value,
            actor=acting.subject,
        )
        return await self._users.refresh(user)

    async def set_active(self, *, user_id: str, active: bool, acting: Principal) -> User:
        user = await self._require_user(user_id)
        await self._users.set_deactivated(user.id, not active)
        await self._audit.add(
            subject_id=str(user.id),
            actor=acting.subject,
            event_type="USER_ACTIVATED" if active else "USER_DEACTIVATED",
        )
        await self._session.commit()
        log.info("account.active_changed", user_id=str(user.id), active=active)
        return await self._users.refresh(user)

    async def delete_user(self, *, user_id: str, acting: Principal) -> None:
        uid = parse_user_id(user_id)
        if uid is None or not await self._users.delete(uid):
            raise AccountNotFound()
        await self._audit.add(subject_id=str(uid), actor=acting.subject, event_type="USER_DELETED")
        await self._session.commit()
        log.info("account.deleted", user_id=str(uid), actor=acting.subject)

    # --- external scheme ----------------------------------------------------

    def _require_bridge(self) -> ExternalIdentityBridge:
        if self._bridge is None:
            raise ProviderConfigError()
        return self._bridge

    async def register_external(
        self, *, first_name: str, last_name: str, email: str, password: str
    ) -> tuple[ExternalIdentity, User]:
        bridge = self._require_bridge()
        if await self._users.get_by_email(email) is not None:
            log.warning("account.register_rejected", reason="duplicate", scheme="external")
            raise DuplicateAccount()

        # Self-registration is always the lowest tier; escalation is an admin action.
        identity = await bridge.create_with_role(
            email=email,
            password=password,
            role=Role.parent,
            display_name=f"{first_name} {last_name}",
        )
        user = await self._users.create(
            email=email,
            password_hash=EXTERNAL_MANAGED_HASH,
            first_name=first_name,
            last_name=last_name,
            role=Role.parent,
            external_uid=identity.uid,
        )
        await self._audit.add(
            subject_id=str(user.id),
            actor=identity.uid,
            event_type="USER_REGISTERED",
            details={"scheme": "external", "role_assigned": identity.role_assigned},
        )
        await self._session.commit()
        log.info("account.registered", user_id=str(user.id), external_uid=identity.uid)
        return identity, user

    async def assign_external_role(
        self, *, target_uid: str, role: Role, acting: Principal
    ) -> RoleAssignment:
        bridge = self._require_bridge()
        assignment = await bridge.assign_role(target_id=target_uid, role=role, acting=acting)
        # Mirror onto the linked record (if any) so local reads agree with the claims.
        await self._users.set_role_by_external_uid(target_uid, role)
        await self._audit.add(
            subject_id=target_uid,
            actor=acting.subject,
            event_type="ROLE_CHANGED",
            details={"to": role.value, "scheme": "external"},
        )
        await self._session.commit()
        return assignment

    async def _require_user(self, user_id: str | uuid.UUID) -> User:
        user = await self._users.get(user_id)
        if user is None:
            raise AccountNotFound()
        return user


# --- Module Notes -----------------------------------------------------------
# Every mutating method commits exactly once at its end; an exception before that
# leaves the request session uncommitted and it is rolled back on close.
