from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces.repositories.processing_jobs import ProcessingJobsRepository
from src.domain.models.processing_job import ProcessingJob
from src.infrastructure.db.orm.processing_job import ProcessingJobORM
from src.utils.datetime_tz import ensure_utc


class ProcessingJobsSQLAlchemyRepository(ProcessingJobsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: ProcessingJobORM) -> ProcessingJob:
        return ProcessingJob(
            id=orm.id,
            asset_id=orm.asset_id,
            kind=orm.kind,
            status=orm.status,
            payload=orm.payload,
            created_at=ensure_utc(orm.created_at),
        )

    async def add(self, job: ProcessingJob) -> ProcessingJob:
        orm = ProcessingJobORM(
            id=job.id,
            asset_id=job.asset_id,
            kind=job.kind,
            status=job.status,
            payload=job.payload,
            created_at=job.created_at,
        )
        self.session.add(orm)
        await self.session.flush()
        return self._to_domain(orm)

    async def list_for_asset(self, asset_id: UUID) -> list[ProcessingJob]:
        stmt = (
            select(ProcessingJobORM)
            .where(ProcessingJobORM.asset_id == asset_id)
            .order_by(ProcessingJobORM.created_at)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]
