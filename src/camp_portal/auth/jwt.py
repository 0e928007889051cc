"""
camp_portal.auth.jwt

JWT issuing and validation helpers for the local bearer-token scheme.

Responsibilities:
- Issue signed, expiring tokens carrying subject id and role.
- Decode and validate tokens with strict claim requirements (iss/aud/exp/iat/sub).
- Classify failures into malformed / bad signature / expired.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import ExpiredSignatureError, InvalidSignatureError, InvalidTokenError

from camp_portal.auth.models import AuthScheme, Principal, Role
from camp_portal.errors import BadSignature, ConfigurationError, MalformedToken, TokenExpired
from camp_portal.settings import Settings


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        # No usable default: startup aborts without a signing secret.
        if not settings.jwt_secret:
            raise ConfigurationError("CAMP_JWT_SECRET is not set")
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    role: Role,
    ttl: timedelta = timedelta(hours=1),
    email: str | None = None,
    token_version: int | None = None,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "role": Role.parse(role).value,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    if email is not None:
        payload["email"] = email
    if token_version is not None:
        payload["ver"] = token_version
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    # Signature is checked before registered claims, so a tampered expired token
    # reports BadSignature rather than TokenExpired.
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub"],
            },
        )
    except ExpiredSignatureError as e:
        raise TokenExpired() from e
    except InvalidSignatureError as e:
        raise BadSignature() from e
    except InvalidTokenError as e:
        raise MalformedToken() from e


def verify_token(*, cfg: JwtConfig, token: str) -> Principal:
    payload = decode_and_validate(cfg=cfg, token=token)

    subject = str(payload.get("sub", ""))
    role_raw = payload.get("role")
    if not subject:
        raise MalformedToken("Invalid token subject.")
    if role_raw is not None and role_raw not in {r.value for r in Role}:
        raise MalformedToken("Invalid token role.")

    version = payload.get("ver")
    if version is not None and not isinstance(version, int):
        raise MalformedToken()

    # Role comes from the token, not the store: it stays stale until re-issue or revocation.
    return Principal(
        subject=subject,
        role=Role.parse(role_raw),
        email=payload.get("email"),
        scheme=AuthScheme.local,
        token_version=version,
    )


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by:
# - `services.accounts` (login/register)
# - `api/routers/dev_auth.py` (dev convenience)
