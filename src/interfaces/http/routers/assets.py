from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from src.application.use_cases.assets import get_asset
from src.config.settings import Settings
from src.infrastructure.auth.context import AuthContext
from src.infrastructure.storage.ports import StorageService
from src.interfaces.http.deps import (
    get_app_settings,
    get_auth_context,
    get_storage_service,
    get_uow,
)
from src.interfaces.http.schemas.assets import AssetResponse

router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("/{asset_id}", response_model=AssetResponse)
async def read_asset(
    asset_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_app_settings),
) -> AssetResponse:
    result = await get_asset.execute(
        uow,
        storage,
        asset_id=asset_id,
        requester_id=context.user_id,
        role=context.role,
        download_ttl_seconds=settings.download_url_ttl_seconds,
    )
    return AssetResponse.from_asset(result.asset, url=result.url)
