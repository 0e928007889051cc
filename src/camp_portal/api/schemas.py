"""
camp_portal.api.schemas

Request/response models shared by the auth routers.

Responsibilities:
- Validate inbound JSON (camelCase field names, as the web client sends them).
- Shape account summaries without ever exposing hashes or reset tokens.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from camp_portal.auth.models import Role
from camp_portal.db.models import User

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
PASSWORD_MIN = 6
# bcrypt ignores bytes past 72; longer secrets are rejected, never truncated.
PASSWORD_MAX_BYTES = 72


def _within_bcrypt_limit(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes.")
    return value


Password = Annotated[str, AfterValidator(_within_bcrypt_limit)]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: Password = Field(min_length=1)


class RegisterRequest(CamelModel):
    first_name: str = Field(alias="firstName", min_length=1, max_length=128)
    last_name: str = Field(alias="lastName", min_length=1, max_length=128)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: Password = Field(min_length=PASSWORD_MIN)


class PasswordResetRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)


class SetPasswordRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    token: str = Field(min_length=1, max_length=128)
    password: Password = Field(min_length=PASSWORD_MIN)


class ChangePasswordRequest(CamelModel):
    current_password: Password = Field(alias="currentPassword", min_length=1)
    new_password: Password = Field(alias="newPassword", min_length=PASSWORD_MIN)


class AssignPasswordRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    new_password: Password = Field(alias="newPassword", min_length=PASSWORD_MIN)


class ProfileUpdateRequest(CamelModel):
    first_name: str | None = Field(default=None, alias="firstName", min_length=1, max_length=128)
    last_name: str | None = Field(default=None, alias="lastName", min_length=1, max_length=128)
    phone: str | None = Field(default=None, pattern=r"^\+?[1-9]\d{1,14}$")


class RoleChangeRequest(CamelModel):
    role: Role


class AssignRoleRequest(CamelModel):
    target_uid: str = Field(alias="targetUid", min_length=1, max_length=128)
    role: Role


class VerifyTokenRequest(CamelModel):
    id_token: str = Field(alias="idToken", min_length=1)


class UserSummary(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str = Field(serialization_alias="firstName")
    last_name: str = Field(serialization_alias="lastName")
    role: Role

    @classmethod
    def from_user(cls, user: User) -> UserSummary:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
        )


class UserDetail(UserSummary):
    phone: str | None = None
    deactivated: bool = False
    external_uid: str | None = Field(default=None, serialization_alias="externalUid")
    created_at: datetime = Field(serialization_alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> UserDetail:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            phone=user.phone,
            deactivated=user.deactivated,
            external_uid=user.external_uid,
            created_at=user.created_at,
        )


class TokenResponse(BaseModel):
    token: str
    user: UserSummary


class MessageResponse(BaseModel):
    message: str
