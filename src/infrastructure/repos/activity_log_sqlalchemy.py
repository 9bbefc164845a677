from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces.repositories.activity_log import ActivityLogRepository
from src.domain.models.activity_entry import ActivityEntry
from src.infrastructure.db.orm.activity_log import ActivityLogORM
from src.utils.datetime_tz import ensure_utc


class ActivityLogSQLAlchemyRepository(ActivityLogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: ActivityLogORM) -> ActivityEntry:
        return ActivityEntry(
            id=orm.id,
            user_id=orm.user_id,
            action=orm.action,
            entity_type=orm.entity_type,
            entity_id=orm.entity_id,
            payload=orm.payload,
            created_at=ensure_utc(orm.created_at),
        )

    async def add(self, entry: ActivityEntry) -> ActivityEntry:
        orm = ActivityLogORM(
            id=entry.id,
            user_id=entry.user_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            payload=entry.payload,
            created_at=entry.created_at,
        )
        self.session.add(orm)
        await self.session.flush()
        return self._to_domain(orm)

    async def list_for_entity(self, entity_type: str, entity_id: UUID) -> list[ActivityEntry]:
        stmt = (
            select(ActivityLogORM)
            .where(ActivityLogORM.entity_type == entity_type, ActivityLogORM.entity_id == entity_id)
            .order_by(ActivityLogORM.created_at)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]
