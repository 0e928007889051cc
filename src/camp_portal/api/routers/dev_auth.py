"""
camp_portal.api.routers.dev_auth

Development-only token minting (`/v1/dev/token`).

Responsibilities:
- Issue a local bearer token for an arbitrary subject/role outside production.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from camp_portal.api.deps import settings_dep
from camp_portal.auth.jwt import issue_token
from camp_portal.auth.models import Role
from camp_portal.observability.logging import get_logger
from camp_portal.settings import Settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])

log = get_logger(__name__)


class DevTokenRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=256)
    role: Role = Role.parent
    email: str | None = None
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    request: Request,
    body: DevTokenRequest,
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    # The router is not mounted in prod; this guards against a misconfigured mount.
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    token = issue_token(
        cfg=request.app.state.jwt_cfg,
        subject=body.subject,
        role=body.role,
        email=body.email,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    log.warning("dev.token_minted", subject=body.subject, role=body.role.value)
    return DevTokenResponse(access_token=token)


# --- Module Notes -----------------------------------------------------------
# Dev tokens carry no token version, so strict-mode routes reject them.
