from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.models.stored_asset import StoredAsset


class StoredAssetsRepository(Protocol):
    async def add(self, asset: StoredAsset) -> StoredAsset: ...

    async def get(self, asset_id: UUID) -> StoredAsset | None: ...

    async def get_by_storage_key(self, storage_key: str) -> StoredAsset | None: ...
