"""
camp_portal.api.routers.admin

User administration endpoints (`/api/admin`), local scheme, strict mode.

Responsibilities:
- List accounts (admin and above).
- Change roles with token revocation, (de)activate and delete accounts (superadmin only).
- Read an account's audit trail (superadmin only).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from camp_portal.api.deps import account_service, db_session
from camp_portal.api.schemas import MessageResponse, RoleChangeRequest, UserDetail
from camp_portal.auth.deps import require, require_minimum_role
from camp_portal.auth.models import Principal, Role
from camp_portal.auth.policy import SUPERADMIN_ONLY
from camp_portal.db.repositories.audit import AuditRepo
from camp_portal.services.accounts import AccountService

router = APIRouter(prefix="/api/admin", tags=["admin"])

_admin = require_minimum_role(Role.admin, strict=True)
_superadmin = require(SUPERADMIN_ONLY, strict=True)


@router.get("/users", response_model=list[UserDetail])
async def list_users(
    _: Principal = Depends(_admin),
    accounts: AccountService = Depends(account_service),
) -> list[UserDetail]:
    return [UserDetail.from_user(u) for u in await accounts.list_users()]


@router.patch("/users/{user_id}/role", response_model=UserDetail)
async def change_role(
    user_id: str,
    body: RoleChangeRequest,
    principal: Principal = Depends(_superadmin),
    accounts: AccountService = Depends(account_service),
) -> UserDetail:
    user = await accounts.change_role(user_id=user_id, role=body.role, acting=principal)
    return UserDetail.from_user(user)


@router.patch("/users/{user_id}/deactivate", response_model=UserDetail)
async def deactivate_user(
    user_id: str,
    principal: Principal = Depends(_superadmin),
    accounts: AccountService = Depends(account_service),
) -> UserDetail:
    user = await accounts.set_active(user_id=user_id, active=False, acting=principal)
    return UserDetail.from_user(user)


@router.patch("/users/{user_id}/activate", response_model=UserDetail)
async def activate_user(
    user_id: str,
    principal: Principal = Depends(_superadmin),
    accounts: AccountService = Depends(account_service),
) -> UserDetail:
    user = await accounts.set_active(user_id=user_id, active=True, acting=principal)
    return UserDetail.from_user(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    principal: Principal = Depends(_superadmin),
    accounts: AccountService = Depends(account_service),
) -> MessageResponse:
    await accounts.delete_user(user_id=user_id, acting=principal)
    return MessageResponse(message="User deleted successfully.")


@router.get("/users/{user_id}/audit")
async def list_audit_events(
    user_id: str,
    _: Principal = Depends(_superadmin),
    session: AsyncSession = Depends(db_session),
) -> list[dict[str, Any]]:
    # Newest first.
    events = await AuditRepo(session).list_for_subject(user_id)
    return [
        {
            "id": str(e.id),
            "eventType": e.event_type,
            "actor": e.actor,
            "details": e.details,
            "createdAt": e.created_at.isoformat(),
        }
        for e in events
    ]


# --- Module Notes -----------------------------------------------------------
# Listing uses the hierarchy (admin or above); mutations use the exact superadmin
# allow-list, matching the portal's two authorization styles.
