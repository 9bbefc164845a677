from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from src.application.errors import NotFound, PermissionDenied
from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.stored_asset import StoredAsset
from src.domain.value_objects.role import Role
from src.infrastructure.storage.ports import StorageService

DOWNLOAD_URL_TTL_SECONDS = 3600


@dataclass(slots=True)
class AssetWithUrl:
    asset: StoredAsset
    url: str


def ensure_can_read(asset: StoredAsset, requester_id: UUID, role: Role) -> None:
    if asset.owner_id != requester_id and not role.can_read_any_asset():
        raise PermissionDenied("Not allowed to read this asset")


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    asset_id: UUID,
    requester_id: UUID,
    role: Role,
    download_ttl_seconds: int = DOWNLOAD_URL_TTL_SECONDS,
) -> AssetWithUrl:
    asset = await uow.stored_assets.get(asset_id)
    if not asset:
        raise NotFound("Asset not found")
    ensure_can_read(asset, requester_id, role)
    if asset.is_public:
        url = await storage.get_public_url(asset.storage_key)
    else:
        url = await storage.get_presigned_download(
            asset.storage_key, expires_seconds=download_ttl_seconds, filename=asset.filename
        )
    return AssetWithUrl(asset=asset, url=url)
