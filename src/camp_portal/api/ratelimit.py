"""
camp_portal.api.ratelimit

Per-client request limits for credential endpoints.

Responsibilities:
- Build one fixed-window limiter per app from settings (`limits` storage URI).
- Provide a dependency factory that counts a request against a named scope.
- Reject over-limit clients with 429 and a `Retry-After` hint.
"""

from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Request
from limits import RateLimitItem, parse
from limits.aio.storage import Storage as AsyncStorage
from limits.aio.strategies import FixedWindowRateLimiter
from limits.errors import ConfigurationError as LimitsConfigurationError
from limits.storage import storage_from_string

from camp_portal.errors import ConfigurationError, TooManyRequests
from camp_portal.observability.logging import get_logger
from camp_portal.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True)
class AuthRateLimiter:
    limiter: FixedWindowRateLimiter
    item: RateLimitItem
    enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthRateLimiter:
        try:
            storage = storage_from_string(settings.rate_limit_storage_uri)
            item = parse(settings.auth_rate_limit)
        except (ValueError, LimitsConfigurationError) as e:
            raise ConfigurationError(f"Invalid rate limit configuration: {e}") from e
        if not isinstance(storage, AsyncStorage):
            raise ConfigurationError("rate_limit_storage_uri must use an async+ scheme.")
        return cls(
            limiter=FixedWindowRateLimiter(storage),
            item=item,
            enabled=settings.rate_limit_enabled,
        )

    async def hit(self, scope: str, client: str) -> None:
        """Count one request; raises `TooManyRequests` once the window is spent."""
        if not self.enabled:
            return
        if await self.limiter.hit(self.item, scope, client):
            return
        stats = await self.limiter.get_window_stats(self.item, scope, client)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        log.warning("rate_limit.exceeded", scope=scope, retry_after=retry_after)
        raise TooManyRequests(retry_after=retry_after)


def rate_limited(scope: str) -> Callable[[Request], Awaitable[None]]:
    """
    Dependency counting the caller's address against `scope`.

    Routes sharing a scope share one budget per client.
    """

    async def _dep(request: Request) -> None:
        limiter: AuthRateLimiter = request.app.state.rate_limiter
        client = request.client.host if request.client else "unknown"
        await limiter.hit(scope, client)

    return _dep


# --- Module Notes -----------------------------------------------------------
# The limiter lives on `app.state`, so each app (and each test app) counts from zero.
# Shared deployments point `rate_limit_storage_uri` at e.g. `async+redis://host:6379`.
