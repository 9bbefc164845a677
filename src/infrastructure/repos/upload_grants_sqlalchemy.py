from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.errors import ConflictError
from src.application.interfaces.repositories.upload_grants import UploadGrantsRepository
from src.domain.models.upload_grant import UploadGrant
from src.domain.value_objects.upload_status import GrantStatus
from src.infrastructure.db.orm.upload_grant import UploadGrantORM
from src.utils.datetime_tz import ensure_utc


class UploadGrantsSQLAlchemyRepository(UploadGrantsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: UploadGrantORM) -> UploadGrant:
        return UploadGrant(
            id=orm.id,
            token=orm.token,
            owner_id=orm.owner_id,
            context_id=orm.context_id,
            storage_key=orm.storage_key,
            category=orm.category,
            max_size_bytes=orm.max_size_bytes,
            allowed_mime_types=list(orm.allowed_mime_types or []),
            status=orm.status,
            used_at=ensure_utc(orm.used_at),
            created_at=ensure_utc(orm.created_at),
            expires_at=ensure_utc(orm.expires_at),
        )

    async def add(self, grant: UploadGrant) -> UploadGrant:
        orm = UploadGrantORM(
            id=grant.id,
            token=grant.token,
            owner_id=grant.owner_id,
            context_id=grant.context_id,
            storage_key=grant.storage_key,
            category=grant.category,
            max_size_bytes=grant.max_size_bytes,
            allowed_mime_types=list(grant.allowed_mime_types),
            status=grant.status,
            used_at=grant.used_at,
            created_at=grant.created_at,
            expires_at=grant.expires_at,
        )
        self.session.add(orm)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Upload grant already exists") from exc
        return self._to_domain(orm)

    async def get_by_token(self, token: str) -> UploadGrant | None:
        stmt = (
            select(UploadGrantORM)
            .where(UploadGrantORM.token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        orm = result.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def mark_used(self, grant_id: UUID, used_at: datetime) -> bool:
        stmt = (
            update(UploadGrantORM)
            .where(UploadGrantORM.id == grant_id, UploadGrantORM.status == GrantStatus.PENDING)
            .values(status=GrantStatus.USED, used_at=used_at)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_expired(self, grant_id: UUID) -> bool:
        stmt = (
            update(UploadGrantORM)
            .where(UploadGrantORM.id == grant_id, UploadGrantORM.status == GrantStatus.PENDING)
            .values(status=GrantStatus.EXPIRED)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def expire_stale(self, now: datetime) -> int:
        stmt = (
            update(UploadGrantORM)
            .where(
                UploadGrantORM.status == GrantStatus.PENDING,
                UploadGrantORM.expires_at < now,
            )
            .values(status=GrantStatus.EXPIRED)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
