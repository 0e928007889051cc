"""
camp_portal.db.repositories.audit

Repository for `AuditEvent` entities.

Responsibilities:
- Append audit events for account lifecycle and role changes.
- Query the trail per account for administrators.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from camp_portal.db.models import AuditEvent


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        subject_id: str,
        actor: str,
        event_type: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent:
        # Never put secrets or tokens in `details`.
        ev = AuditEvent(
            subject_id=subject_id,
            actor=actor,
            event_type=event_type,
            details=details or {},
        )
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def list_for_subject(self, subject_id: str, *, limit: int = 200) -> list[AuditEvent]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.subject_id == subject_id)
            .order_by(desc(AuditEvent.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# Writes share the caller's transaction; the service layer commits.
