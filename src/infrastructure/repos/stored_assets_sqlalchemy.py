from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.errors import ConflictError
from src.application.interfaces.repositories.stored_assets import StoredAssetsRepository
from src.domain.models.stored_asset import StoredAsset
from src.infrastructure.db.orm.stored_asset import StoredAssetORM
from src.utils.datetime_tz import ensure_utc


class StoredAssetsSQLAlchemyRepository(StoredAssetsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: StoredAssetORM) -> StoredAsset:
        return StoredAsset(
            id=orm.id,
            storage_key=orm.storage_key,
            owner_id=orm.owner_id,
            context_id=orm.context_id,
            filename=orm.filename,
            mime_type=orm.mime_type,
            size_bytes=orm.size_bytes,
            checksum=orm.checksum,
            category=orm.category,
            visibility=orm.visibility,
            created_at=ensure_utc(orm.created_at),
        )

    async def add(self, asset: StoredAsset) -> StoredAsset:
        orm = StoredAssetORM(
            id=asset.id,
            storage_key=asset.storage_key,
            owner_id=asset.owner_id,
            context_id=asset.context_id,
            filename=asset.filename,
            mime_type=asset.mime_type,
            size_bytes=asset.size_bytes,
            checksum=asset.checksum,
            category=asset.category,
            visibility=asset.visibility,
            created_at=asset.created_at,
        )
        self.session.add(orm)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError("An asset already exists for this storage key") from exc
        return self._to_domain(orm)

    async def get(self, asset_id: UUID) -> StoredAsset | None:
        result = await self.session.execute(
            select(StoredAssetORM).where(StoredAssetORM.id == asset_id)
        )
        orm = result.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def get_by_storage_key(self, storage_key: str) -> StoredAsset | None:
        result = await self.session.execute(
            select(StoredAssetORM).where(StoredAssetORM.storage_key == storage_key)
        )
        orm = result.scalar_one_or_none()
        return self._to_domain(orm) if orm else None
