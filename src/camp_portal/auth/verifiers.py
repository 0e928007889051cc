"""
camp_portal.auth.verifiers

Interchangeable identity verifiers.

Responsibilities:
- Define the `IdentityVerifier` capability: bearer token in, `Principal` out.
- Provide the local (signed JWT) and external (identity provider) implementations.
"""

from __future__ import annotations

from typing import Protocol

from camp_portal.auth.external import ExternalIdentityBridge
from camp_portal.auth.jwt import JwtConfig, verify_token
from camp_portal.auth.models import AuthScheme, Principal


class IdentityVerifier(Protocol):
    scheme: AuthScheme

    async def verify(self, token: str) -> Principal: ...


class LocalTokenVerifier:
    scheme = AuthScheme.local

    def __init__(self, cfg: JwtConfig) -> None:
        self._cfg = cfg

    async def verify(self, token: str) -> Principal:
        # HMAC verification is cheap enough to run inline on the event loop.
        return verify_token(cfg=self._cfg, token=token)


class ExternalTokenVerifier:
    scheme = AuthScheme.external

    def __init__(self, bridge: ExternalIdentityBridge) -> None:
        self._bridge = bridge

    async def verify(self, token: str) -> Principal:
        return await self._bridge.verify_external_token(token)


# --- Module Notes -----------------------------------------------------------
# Verifiers are built once in `api.app.create_app` and stored on `app.state.verifiers`.
