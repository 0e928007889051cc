"""
camp_portal.db.repositories.users

Repository for `User` (credential record) entities.

Responsibilities:
- Create and look up accounts by id, email and external uid.
- Apply single-field atomic updates (role, deactivation, secret, reset grant).
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from camp_portal.auth.models import Role
from camp_portal.db.models import User, utcnow
from camp_portal.errors import DuplicateAccount


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_user_id(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: Role = Role.parent,
        external_uid: str | None = None,
    ) -> User:
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=role,
            external_uid=external_uid,
            deactivated=False,
            token_version=0,
        )
        self._session.add(user)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # The unique index is the source of truth under concurrent registration.
            await self._session.rollback()
            raise DuplicateAccount() from e
        return user

    async def get(self, user_id: uuid.UUID | str) -> User | None:
        uid = user_id if isinstance(user_id, uuid.UUID) else parse_user_id(user_id)
        if uid is None:
            return None
        return await self._session.get(User, uid)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == normalize_email(email))
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_external_uid(self, external_uid: str) -> User | None:
        stmt = select(User).where(User.external_uid == external_uid)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_all(self, *, limit: int = 500) -> list[User]:
        stmt = select(User).order_by(User.created_at).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def set_role(self, user_id: uuid.UUID, role: Role, *, revoke_tokens: bool = True) -> None:
        values: dict[str, object] = {"role": role, "updated_at": utcnow()}
        if revoke_tokens:
            # Increment in SQL so concurrent writers never lose a revocation.
            values["token_version"] = User.token_version + 1
        await self._session.execute(update(User).where(User.id == user_id).values(**values))

    async def set_role_by_external_uid(self, external_uid: str, role: Role) -> None:
        await self._session.execute(
            update(User)
            .where(User.external_uid == external_uid)
            .values(role=role, token_version=User.token_version + 1, updated_at=utcnow())
        )

    async def set_deactivated(self, user_id: uuid.UUID, deactivated: bool) -> None:
        await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                deactivated=deactivated,
                token_version=User.token_version + 1,
                updated_at=utcnow(),
            )
        )

    async def set_password_hash(self, user_id: uuid.UUID, password_hash: str) -> None:
        # A new secret also consumes any pending reset grant.
        await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                password_hash=password_hash,
                password_reset_token=None,
                password_reset_expires=None,
                updated_at=utcnow(),
            )
        )

    async def set_reset_grant(self, user_id: uuid.UUID, *, token: str, expires: datetime) -> None:
        await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                password_reset_token=token,
                password_reset_expires=expires,
                updated_at=utcnow(),
            )
        )

    async def update_profile(
        self,
        user_id: uuid.UUID,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
    ) -> None:
        values: dict[str, object] = {"updated_at": utcnow()}
        if first_name is not None:
            values["first_name"] = first_name.strip()
        if last_name is not None:
            values["last_name"] = last_name.strip()
        if phone is not None:
            values["phone"] = phone.strip()
        await self._session.execute(update(User).where(User.id == user_id).values(**values))

    async def delete(self, user_id: uuid.UUID) -> bool:
        user = await self._session.get(User, user_id)
        if user is None:
            return False
        await self._session.delete(user)
        await self._session.flush()
        return True

    async def refresh(self, user: User) -> User:
        await self._session.refresh(user)
        return user


# --- Module Notes -----------------------------------------------------------
# Updates are issued as single UPDATE statements so each field change is atomic at
# the database; concurrent role changes are last-writer-wins.
