"""
camp_portal.db.init_db

DB initialization helpers (dev/test convenience).

Responsibilities:
- Create the credential store tables for local development and tests.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from camp_portal.db import models  # noqa: F401  # registers tables on Base.metadata
from camp_portal.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    # Idempotent: existing tables are left untouched.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# --- Module Notes -----------------------------------------------------------
# Production deployments run Alembic migrations instead (see alembic/env.py).
