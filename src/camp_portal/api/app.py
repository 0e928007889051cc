"""
camp_portal.api.app

FastAPI app factory for the camp portal identity service.

Responsibilities:
- Validate auth configuration up front (signing secret, identity provider).
- Build the credential endpoint rate limiter (invalid limits are fatal).
- Build verifiers, the external identity bridge and the DB session factory once.
- Register routers, middleware and exception handlers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from camp_portal import __version__
from camp_portal.api.errors import register_exception_handlers
from camp_portal.api.ratelimit import AuthRateLimiter
from camp_portal.api.routers.admin import router as admin_router
from camp_portal.api.routers.auth import router as auth_router
from camp_portal.api.routers.dev_auth import router as dev_auth_router
from camp_portal.api.routers.external_auth import router as external_auth_router
from camp_portal.api.routers.health import router as health_router
from camp_portal.auth.external import (
    ExternalIdentityBridge,
    FirebaseIdentityProvider,
    IdentityProvider,
    build_firebase_app,
)
from camp_portal.auth.jwt import JwtConfig
from camp_portal.auth.models import AuthScheme
from camp_portal.auth.verifiers import ExternalTokenVerifier, LocalTokenVerifier
from camp_portal.db.init_db import init_db
from camp_portal.db.session import create_engine, create_sessionmaker
from camp_portal.observability.logging import configure_logging, get_logger
from camp_portal.observability.middleware import RequestContextMiddleware
from camp_portal.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    """
    Raises `ConfigurationError` when the signing secret is missing, when the
    identity provider is unconfigured in production, or when the rate limit
    settings do not parse.
    """
    configure_logging(
        service_name=settings.service_name, level=settings.log_level, fmt=settings.log_format
    )

    jwt_cfg = JwtConfig.from_settings(settings)
    if identity_provider is None:
        identity_provider = FirebaseIdentityProvider(build_firebase_app(settings))
    bridge = ExternalIdentityBridge(
        identity_provider, timeout_seconds=settings.external_timeout_seconds
    )

    rate_limiter = AuthRateLimiter.from_settings(settings)

    engine = create_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        if settings.env in ("dev", "test"):
            # Dev/test convenience; prod runs Alembic migrations.
            await init_db(engine)
        try:
            yield
        finally:
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Camp Portal Identity Service",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.jwt_cfg = jwt_cfg
    app.state.external_bridge = bridge
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)
    app.state.rate_limiter = rate_limiter
    app.state.verifiers = {
        AuthScheme.local: LocalTokenVerifier(jwt_cfg),
        AuthScheme.external: ExternalTokenVerifier(bridge),
    }

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(external_auth_router)
    app.include_router(admin_router)
    if settings.env != "prod":
        app.include_router(dev_auth_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Composition root: the only place that knows which identity provider backs the
# external scheme. Tests inject a fake provider here.
