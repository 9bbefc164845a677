from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from src.domain.models.stored_asset import StoredAsset
from src.domain.value_objects.upload_category import UploadCategory, Visibility


class AssetResponse(BaseModel):
    id: UUID
    storage_key: str
    owner_id: UUID
    context_id: UUID | None
    filename: str
    mime_type: str
    size_bytes: int
    checksum: str | None
    category: UploadCategory
    visibility: Visibility
    created_at: datetime
    url: str | None = None

    @classmethod
    def from_asset(cls, asset: StoredAsset, url: str | None = None) -> AssetResponse:
        return cls(
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
            url=url,
        )
