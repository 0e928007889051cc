"""
camp_portal.api.routers.external_auth

External-scheme endpoints (`/api/external-auth`), backed by the identity provider.

Responsibilities:
- Register a provider identity plus its linked local record.
- Assign roles via custom claims (admin+, superadmin-only escalation guard).
- Expose claims, profile and token verification helpers.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from camp_portal.api.deps import account_service, db_session
from camp_portal.api.ratelimit import rate_limited
from camp_portal.api.schemas import (
    AssignRoleRequest,
    RegisterRequest,
    UserDetail,
    VerifyTokenRequest,
)
from camp_portal.auth.deps import authenticated, require, require_self_or
from camp_portal.auth.external import ExternalIdentityBridge
from camp_portal.auth.models import AuthScheme, Principal
from camp_portal.auth.policy import ADMIN_ROLES
from camp_portal.db.repositories.users import UserRepo
from camp_portal.services.accounts import AccountService

router = APIRouter(prefix="/api/external-auth", tags=["external-auth"])

_current = authenticated(AuthScheme.external)
# Own claims for anyone; other users' claims for admin and above.
_own_or_admin = require_self_or(ADMIN_ROLES, path_param="uid", scheme=AuthScheme.external)


def _bridge(request: Request) -> ExternalIdentityBridge:
    return request.app.state.external_bridge


@router.post(
    "/register",
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("external-auth"))],
)
async def register(
    body: RegisterRequest,
    accounts: AccountService = Depends(account_service),
) -> dict[str, Any]:
    identity, user = await accounts.register_external(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
    )
    return {
        "message": "User registered successfully",
        "user": {
            "uid": identity.uid,
            "email": identity.email,
            "role": identity.role.value,
            "firstName": user.first_name,
            "lastName": user.last_name,
        },
        "roleAssigned": identity.role_assigned,
    }


@router.post("/assign-role")
async def assign_role(
    body: AssignRoleRequest,
    principal: Principal = Depends(
        require(ADMIN_ROLES, scheme=AuthScheme.external, strict=True)
    ),
    accounts: AccountService = Depends(account_service),
) -> dict[str, Any]:
    assignment = await accounts.assign_external_role(
        target_uid=body.target_uid, role=body.role, acting=principal
    )
    return {
        "success": True,
        "message": f"User role updated to {assignment.role.value}",
        "targetUid": assignment.target_id,
        "sessionsRevoked": assignment.sessions_revoked,
    }


@router.get("/claims/{uid}")
async def get_claims(
    uid: str,
    _: Principal = Depends(_own_or_admin),
    bridge: ExternalIdentityBridge = Depends(_bridge),
) -> dict[str, Any]:
    return {"claims": await bridge.get_claims(uid)}


@router.get("/profile")
async def get_profile(
    principal: Principal = Depends(_current),
    bridge: ExternalIdentityBridge = Depends(_bridge),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    provider_user = await bridge.get_user(principal.subject)
    record = await UserRepo(session).get_by_external_uid(principal.subject)
    return {
        "uid": provider_user.uid,
        "email": provider_user.email,
        "displayName": provider_user.display_name,
        "role": principal.role.value,
        "customClaims": dict(provider_user.custom_claims),
        "account": UserDetail.from_user(record).model_dump(mode="json", by_alias=True)
        if record is not None
        else None,
    }


@router.post("/verify-token")
async def verify_token(
    body: VerifyTokenRequest,
    bridge: ExternalIdentityBridge = Depends(_bridge),
) -> dict[str, Any]:
    # Verification errors propagate to the error handler (401/500 JSON).
    principal = await bridge.verify_external_token(body.id_token)
    return {
        "valid": True,
        "uid": principal.subject,
        "email": principal.email,
        "role": principal.role.value,
    }


# --- Module Notes -----------------------------------------------------------
# Routes here only ever accept provider-issued tokens; local tokens are rejected
# by the external verifier like any other invalid credential.
