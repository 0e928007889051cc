"""
camp_portal.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Build the request-scoped `AccountService` from app.state.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camp_portal.services.accounts import AccountService
from camp_portal.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The app's own settings, not the env-cached ones (tests build apps with explicit settings).
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped session; commit is owned by the service layer.
    async with session_factory() as session:
        yield session


def account_service(
    request: Request,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> AccountService:
    return AccountService(
        session=session,
        settings=settings,
        jwt_cfg=request.app.state.jwt_cfg,
        bridge=request.app.state.external_bridge,
    )
