"""
camp_portal.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Extract the bearer credential and resolve it to a `Principal` through the
  route family's verifier (local or external).
- Optionally re-check the credential record (strict mode).
- Enforce allow-list and minimum-role requirements via reusable dependency factories.

Per request: NoCredential -> CredentialExtracted -> PrincipalResolved -> Authorized | Rejected.
Every transition is logged; the raw credential never is.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from camp_portal.auth.models import AuthScheme, Principal, Role
from camp_portal.auth.policy import AllowRoles, MinimumRole, Requirement, authorize
from camp_portal.auth.verifiers import IdentityVerifier
from camp_portal.db.repositories.users import UserRepo
from camp_portal.errors import (
    CampPortalError,
    InsufficientRole,
    MissingOrMalformedCredential,
    PrincipalNotFound,
    TokenRevoked,
)
from camp_portal.observability.logging import get_logger

log = get_logger(__name__)

# auto_error=False: a missing header or non-Bearer scheme yields None and we raise our own error.
_bearer = HTTPBearer(auto_error=False)


def _reject(error: CampPortalError, *, scheme: AuthScheme, subject: str | None = None) -> CampPortalError:
    log.warning(
        "auth.rejected",
        scheme=scheme.value,
        reason=error.error_code,
        status=error.status_code,
        subject=subject,
    )
    return error


def _verifier_for(request: Request, scheme: AuthScheme) -> IdentityVerifier:
    # Built once in `api.app.create_app`.
    return request.app.state.verifiers[scheme]


async def _confirm_record(request: Request, principal: Principal) -> None:
    """
    Strict mode: the account must still exist, be active and (local scheme)
    the token must carry the record's current token version.
    """
    async with request.app.state.sessionmaker() as session:
        users = UserRepo(session)
        if principal.scheme is AuthScheme.external:
            user = await users.get_by_external_uid(principal.subject)
        else:
            user = await users.get(principal.subject)

    if user is None or user.deactivated:
        raise PrincipalNotFound()
    if principal.scheme is AuthScheme.local and principal.token_version != user.token_version:
        raise TokenRevoked()


async def resolve_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials | None,
    *,
    scheme: AuthScheme,
    strict: bool = False,
) -> Principal:
    if creds is None or not creds.credentials:
        raise _reject(MissingOrMalformedCredential(), scheme=scheme)
    log.debug("auth.credential_extracted", scheme=scheme.value)

    try:
        principal = await _verifier_for(request, scheme).verify(creds.credentials)
    except CampPortalError as e:
        raise _reject(e, scheme=scheme) from e

    if strict:
        try:
            await _confirm_record(request, principal)
        except CampPortalError as e:
            raise _reject(e, scheme=scheme, subject=principal.subject) from e

    log.info(
        "auth.principal_resolved",
        scheme=scheme.value,
        subject=principal.subject,
        role=principal.role.value,
        strict=strict,
    )
    request.state.principal = principal
    return principal


def authenticated(scheme: AuthScheme = AuthScheme.local, *, strict: bool = False):
    async def _dep(
        request: Request,
        creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    ) -> Principal:
        return await resolve_principal(request, creds, scheme=scheme, strict=strict)

    return _dep


def _enforce(principal: Principal, requirement: Requirement, *, scheme: AuthScheme) -> Principal:
    if not authorize(principal, requirement):
        raise _reject(
            InsufficientRole(f"Access denied. Required role(s): {requirement.describe()}."),
            scheme=scheme,
            subject=principal.subject,
        )
    log.info(
        "auth.authorized",
        scheme=scheme.value,
        subject=principal.subject,
        requirement=requirement.describe(),
    )
    return principal


def require(
    requirement: Requirement,
    *,
    scheme: AuthScheme = AuthScheme.local,
    strict: bool = False,
):
    async def _dep(principal: Principal = Depends(authenticated(scheme, strict=strict))) -> Principal:
        return _enforce(principal, requirement, scheme=scheme)

    return _dep


def require_self_or(
    requirement: Requirement,
    *,
    path_param: str,
    scheme: AuthScheme = AuthScheme.local,
    strict: bool = False,
):
    """
    Passes when the path parameter names the caller; otherwise `requirement` applies.
    """

    async def _dep(
        request: Request,
        principal: Principal = Depends(authenticated(scheme, strict=strict)),
    ) -> Principal:
        if request.path_params.get(path_param) == principal.subject:
            log.info(
                "auth.authorized",
                scheme=scheme.value,
                subject=principal.subject,
                requirement="self",
            )
            return principal
        return _enforce(principal, requirement, scheme=scheme)

    return _dep


def require_roles(*roles: Role, scheme: AuthScheme = AuthScheme.local, strict: bool = False):
    # Exact allow-list membership.
    return require(AllowRoles.of(*roles), scheme=scheme, strict=strict)


def require_minimum_role(
    role: Role, *, scheme: AuthScheme = AuthScheme.local, strict: bool = False
):
    # At-least check against the role hierarchy.
    return require(MinimumRole(role), scheme=scheme, strict=strict)


# --- Module Notes -----------------------------------------------------------
# No retries: every failure here is terminal for the request and is rendered by
# the `CampPortalError` handler registered in `api.errors`.
