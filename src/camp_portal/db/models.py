"""
camp_portal.db.models

Persistence schema for the credential store.

Responsibilities:
- Define ORM models:
  - User: registered account (hashed secret, role, reset grant, external linkage)
  - AuditEvent: append-only trail of account and role changes
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Enum, Index, String, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from camp_portal.auth.models import Role
from camp_portal.db.base import Base


def utcnow() -> datetime:
    # Naive UTC timestamps; SQLite does not round-trip tz info.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Always stored lower-cased and stripped (see `normalize_email`).
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=16), nullable=False, default=Role.parent
    )

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    deactivated: Mapped[bool] = mapped_column(nullable=False, default=False)

    password_reset_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(nullable=True)

    external_uid: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)

    # Bumped on role change/revocation; local tokens carrying an older value are rejected.
    token_version: Mapped[int] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # No FK: the trail outlives deleted accounts.
    subject_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)  # user id / external uid / system
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_audit_subject_created", "subject_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Role is persisted as its string value (non-native enum) so adding a tier is a
# data change, not a schema change.
