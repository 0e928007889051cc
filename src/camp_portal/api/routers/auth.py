"""
camp_portal.api.routers.auth

Local-scheme account endpoints (`/api/auth`).

Responsibilities:
- Login and registration returning locally issued bearer tokens.
- Password reset request/completion and password change.
- Own-profile read/update and superadmin password assignment.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from camp_portal.api.deps import account_service
from camp_portal.api.ratelimit import rate_limited
from camp_portal.api.schemas import (
    AssignPasswordRequest,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    SetPasswordRequest,
    TokenResponse,
    UserDetail,
    UserSummary,
)
from camp_portal.auth.deps import authenticated, require_roles
from camp_portal.auth.models import AuthScheme, Principal, Role
from camp_portal.services.accounts import AccountService

router = APIRouter(prefix="/api/auth", tags=["auth"])

_current = authenticated(AuthScheme.local)
_current_strict = authenticated(AuthScheme.local, strict=True)
# Login, registration and reset requests share one budget per client.
_throttled = [Depends(rate_limited("auth"))]


@router.post("/login", response_model=TokenResponse, dependencies=_throttled)
async def login(
    body: LoginRequest,
    accounts: AccountService = Depends(account_service),
) -> TokenResponse:
    result = await accounts.login(email=body.email, password=body.password)
    return TokenResponse(token=result.token, user=UserSummary.from_user(result.user))


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=HTTP_201_CREATED,
    dependencies=_throttled,
)
async def register(
    body: RegisterRequest,
    accounts: AccountService = Depends(account_service),
) -> TokenResponse:
    result = await accounts.register(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
    )
    return TokenResponse(token=result.token, user=UserSummary.from_user(result.user))


@router.post(
    "/request-password-reset", response_model=MessageResponse, dependencies=_throttled
)
async def request_password_reset(
    body: PasswordResetRequest,
    accounts: AccountService = Depends(account_service),
) -> MessageResponse:
    # Same answer whether or not the account exists. Delivery of the grant is
    # handled out of band.
    await accounts.request_password_reset(email=body.email)
    return MessageResponse(message="If that account exists, a password reset link has been sent.")


@router.post("/set-password", response_model=MessageResponse)
async def set_password(
    body: SetPasswordRequest,
    accounts: AccountService = Depends(account_service),
) -> MessageResponse:
    await accounts.complete_password_reset(
        email=body.email, token=body.token, new_password=body.password
    )
    return MessageResponse(message="Password set successfully. You can now log in.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    principal: Principal = Depends(_current_strict),
    accounts: AccountService = Depends(account_service),
) -> MessageResponse:
    await accounts.change_password(
        user_id=principal.subject,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    return MessageResponse(message="Password changed successfully.")


@router.get("/me", response_model=UserDetail)
async def get_me(
    principal: Principal = Depends(_current),
    accounts: AccountService = Depends(account_service),
) -> UserDetail:
    return UserDetail.from_user(await accounts.get_profile(principal.subject))


@router.put("/me", response_model=UserDetail)
async def update_me(
    body: ProfileUpdateRequest,
    principal: Principal = Depends(_current_strict),
    accounts: AccountService = Depends(account_service),
) -> UserDetail:
    # Role, email and secrets are not editable here.
    user = await accounts.update_profile(
        user_id=principal.subject,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    return UserDetail.from_user(user)


@router.post("/assign-password", response_model=MessageResponse)
async def assign_password(
    body: AssignPasswordRequest,
    principal: Principal = Depends(require_roles(Role.superadmin, strict=True)),
    accounts: AccountService = Depends(account_service),
) -> MessageResponse:
    await accounts.assign_password(
        email=body.email, new_password=body.new_password, acting=principal
    )
    return MessageResponse(message="Password updated successfully.")


# --- Module Notes -----------------------------------------------------------
# Mutations on the caller's own account run in strict mode so deactivated or
# revoked sessions cannot change credentials.
