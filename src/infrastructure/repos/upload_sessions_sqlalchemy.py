from __future__ import annotations

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.errors import ConflictError
from src.application.interfaces.repositories.upload_sessions import UploadSessionsRepository
from src.domain.models.upload_session import UploadedPart, UploadSession
from src.domain.value_objects.upload_status import ACTIVE_SESSION_STATUSES, SessionStatus
from src.infrastructure.db.orm.upload_session import UploadSessionORM, UploadSessionPartORM
from src.utils.datetime_tz import ensure_utc

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class UploadSessionsSQLAlchemyRepository(UploadSessionsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(
        self, orm: UploadSessionORM, parts: list[UploadSessionPartORM]
    ) -> UploadSession:
        return UploadSession(
            id=orm.id,
            remote_session_id=orm.remote_session_id,
            owner_id=orm.owner_id,
            context_id=orm.context_id,
            storage_key=orm.storage_key,
            filename=orm.filename,
            mime_type=orm.mime_type,
            category=orm.category,
            total_size_bytes=orm.total_size_bytes,
            chunk_size_bytes=orm.chunk_size_bytes,
            total_chunks=orm.total_chunks,
            status=orm.status,
            uploaded_parts=[
                UploadedPart(
                    part_number=p.part_number,
                    checksum_tag=p.checksum_tag,
                    reported_at=ensure_utc(p.reported_at),
                )
                for p in parts
            ],
            last_error=orm.last_error,
            created_at=ensure_utc(orm.created_at),
            last_activity_at=ensure_utc(orm.last_activity_at),
            completed_at=ensure_utc(orm.completed_at),
            expires_at=ensure_utc(orm.expires_at),
        )

    async def _parts_for(self, session_id: UUID) -> list[UploadSessionPartORM]:
        stmt = (
            select(UploadSessionPartORM)
            .where(UploadSessionPartORM.session_id == session_id)
            .order_by(UploadSessionPartORM.part_number)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, upload_session: UploadSession) -> UploadSession:
        orm = UploadSessionORM(
            id=upload_session.id,
            remote_session_id=upload_session.remote_session_id,
            owner_id=upload_session.owner_id,
            context_id=upload_session.context_id,
            storage_key=upload_session.storage_key,
            filename=upload_session.filename,
            mime_type=upload_session.mime_type,
            category=upload_session.category,
            total_size_bytes=upload_session.total_size_bytes,
            chunk_size_bytes=upload_session.chunk_size_bytes,
            total_chunks=upload_session.total_chunks,
            status=upload_session.status,
            last_error=upload_session.last_error,
            created_at=upload_session.created_at,
            last_activity_at=upload_session.last_activity_at,
            completed_at=upload_session.completed_at,
            expires_at=upload_session.expires_at,
        )
        self.session.add(orm)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Upload session already exists") from exc
        return self._to_domain(orm, [])

    async def get(self, session_id: UUID) -> UploadSession | None:
        stmt = (
            select(UploadSessionORM)
            .where(UploadSessionORM.id == session_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        orm = result.scalar_one_or_none()
        if not orm:
            return None
        return self._to_domain(orm, await self._parts_for(orm.id))

    async def upsert_part(
        self, session_id: UUID, part_number: int, checksum_tag: str, reported_at: datetime
    ) -> bool:
        """Insert or overwrite one part row; never touches other parts.

        Returns False without writing when the session is no longer active. The
        guard UPDATE holds the session row lock until commit.
        """
        touched = await self.session.execute(
            update(UploadSessionORM)
            .where(
                UploadSessionORM.id == session_id,
                UploadSessionORM.status.in_(list(ACTIVE_SESSION_STATUSES)),
            )
            .values(last_activity_at=reported_at)
        )
        if touched.rowcount != 1:
            return False
        values = {
            "session_id": session_id,
            "part_number": part_number,
            "checksum_tag": checksum_tag,
            "reported_at": reported_at,
        }
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is not None:
            stmt = insert(UploadSessionPartORM).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["session_id", "part_number"],
                set_={
                    "checksum_tag": stmt.excluded.checksum_tag,
                    "reported_at": stmt.excluded.reported_at,
                },
            )
            await self.session.execute(stmt)
        else:
            await self.session.merge(UploadSessionPartORM(**values))
            await self.session.flush()
        return True

    async def transition(
        self,
        session_id: UUID,
        from_statuses: Iterable[SessionStatus],
        to_status: SessionStatus,
        *,
        last_error: str | None = None,
        at: datetime | None = None,
    ) -> bool:
        values: dict = {"status": to_status, "last_error": last_error}
        if at is not None:
            values["last_activity_at"] = at
            if to_status is SessionStatus.COMPLETED:
                values["completed_at"] = at
        stmt = (
            update(UploadSessionORM)
            .where(
                UploadSessionORM.id == session_id,
                UploadSessionORM.status.in_(list(from_statuses)),
            )
            .values(**values)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_expired_active(self, now: datetime, limit: int = 100) -> list[UploadSession]:
        stmt = (
            select(UploadSessionORM)
            .where(
                UploadSessionORM.status.in_(list(ACTIVE_SESSION_STATUSES)),
                UploadSessionORM.expires_at < now,
            )
            .order_by(UploadSessionORM.expires_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        # Sweeping never needs the part rows
        return [self._to_domain(orm, []) for orm in result.scalars().all()]
