from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from src.application.errors import (
    Expired,
    NotFound,
    ObjectMissing,
    PermissionDenied,
    VerificationFailed,
)
from src.application.events.models import UploadCompletedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.policies.upload_policy import mime_matches
from src.domain.models.stored_asset import StoredAsset
from src.domain.models.upload_grant import UploadGrant
from src.domain.value_objects.upload_status import GrantStatus
from src.infrastructure.storage.ports import StorageService

logger = logging.getLogger(__name__)


async def _existing_asset(uow: UnitOfWork, grant: UploadGrant) -> StoredAsset:
    asset = await uow.stored_assets.get_by_storage_key(grant.storage_key)
    if not asset:
        raise NotFound("Asset for this upload grant not found")
    return asset


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    token: str,
    requester_id: UUID,
    checksum: str | None = None,
    now: datetime | None = None,
) -> StoredAsset:
    """
    Verify a single-shot upload against storage and record it exactly once.

    A grant that is already used returns the asset recorded for it, so client
    retries after a lost response are harmless.
    """
    now = now or datetime.now(timezone.utc)
    grant = await uow.upload_grants.get_by_token(token)
    if not grant:
        raise NotFound("Upload grant not found")
    if grant.owner_id != requester_id:
        raise PermissionDenied("Upload grant belongs to another user")
    if grant.status is GrantStatus.USED:
        return await _existing_asset(uow, grant)
    if grant.is_expired(now):
        if grant.status is GrantStatus.PENDING:
            await uow.upload_grants.mark_expired(grant.id)
            await uow.commit()
        raise Expired("Upload grant expired", details={"storage_key": grant.storage_key})

    metadata = await storage.head_object(grant.storage_key)
    if metadata is None:
        # Grant stays pending; the client may still finish the PUT before the TTL
        raise ObjectMissing(
            "Uploaded object not found in storage", details={"storage_key": grant.storage_key}
        )
    if metadata.content_length > grant.max_size_bytes:
        await uow.upload_grants.mark_expired(grant.id)
        await uow.commit()
        raise VerificationFailed(
            "Uploaded object is larger than the size declared for the grant",
            details={
                "size_bytes": metadata.content_length,
                "max_size_bytes": grant.max_size_bytes,
            },
        )
    if (
        metadata.content_type
        and grant.allowed_mime_types
        and not mime_matches(metadata.content_type, grant.allowed_mime_types)
    ):
        await uow.upload_grants.mark_expired(grant.id)
        await uow.commit()
        raise VerificationFailed(
            f"Uploaded object has unexpected content type {metadata.content_type}",
            details={"allowed_mime_types": list(grant.allowed_mime_types)},
        )

    if not await uow.upload_grants.mark_used(grant.id, now):
        # Another request flipped the grant first
        current = await uow.upload_grants.get_by_token(token)
        if current and current.status is GrantStatus.USED:
            return await _existing_asset(uow, current)
        raise Expired("Upload grant expired", details={"storage_key": grant.storage_key})

    mime_type = metadata.content_type or (
        grant.allowed_mime_types[0] if grant.allowed_mime_types else "application/octet-stream"
    )
    asset = StoredAsset.from_verified_object(
        storage_key=grant.storage_key,
        owner_id=grant.owner_id,
        context_id=grant.context_id,
        mime_type=mime_type,
        size_bytes=metadata.content_length,
        checksum=checksum or metadata.checksum,
    )
    created = await uow.stored_assets.add(asset)
    uow.add_event(
        UploadCompletedEvent(
            actor_user_id=requester_id,
            asset_id=created.id,
            storage_key=created.storage_key,
            mime_type=created.mime_type,
            size_bytes=created.size_bytes,
            category=created.category.value,
            grant_id=grant.id,
            context_id=created.context_id,
        )
    )
    await uow.commit()
    logger.info("Recorded asset %s from grant %s", created.id, grant.id)
    return created
