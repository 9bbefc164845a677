from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from src.application.errors import (
    BackendRejected,
    ConflictError,
    Incomplete,
    NotFound,
    StorageUnavailable,
    UploadClosed,
    VerificationFailed,
)
from src.application.events.models import UploadCompletedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.uploads.session_guards import (
    expire_if_due,
    load_owned_session,
    reject_if_closed,
)
from src.domain.models.stored_asset import StoredAsset
from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import ACTIVE_SESSION_STATUSES, SessionStatus
from src.infrastructure.storage.ports import CompletedPart, ObjectMetadata, StorageService

logger = logging.getLogger(__name__)


def _normalize_tag(tag: str | None) -> str:
    return (tag or "").strip().strip('"')


async def find_suspect_parts(storage: StorageService, upload_session: UploadSession) -> list[int]:
    """Recorded parts the backend does not hold with the same tag."""
    try:
        remote = await storage.list_parts(
            upload_session.storage_key, upload_session.remote_session_id
        )
    except StorageUnavailable:
        logger.warning("Could not list parts for session %s", upload_session.id, exc_info=True)
        return []
    suspects = []
    for part in upload_session.sorted_parts():
        if _normalize_tag(remote.get(part.part_number)) != _normalize_tag(part.checksum_tag):
            suspects.append(part.part_number)
    return suspects


async def _existing_asset(uow: UnitOfWork, upload_session: UploadSession) -> StoredAsset:
    asset = await uow.stored_assets.get_by_storage_key(upload_session.storage_key)
    if not asset:
        raise NotFound("Asset for this upload session not found")
    return asset


async def _fail(uow: UnitOfWork, upload_session: UploadSession, reason: str, now: datetime) -> None:
    await uow.upload_sessions.transition(
        upload_session.id,
        ACTIVE_SESSION_STATUSES,
        SessionStatus.FAILED,
        last_error=reason,
        at=now,
    )
    await uow.commit()
    logger.warning("Upload session %s failed: %s", upload_session.id, reason)


async def _assemble(
    uow: UnitOfWork, storage: StorageService, upload_session: UploadSession, now: datetime
) -> ObjectMetadata | None:
    """Ask the backend to assemble the parts.

    Returns the object metadata when the backend reports the multipart upload
    as already gone but the assembled object exists (a concurrent completion
    got there first); otherwise None.
    """
    parts = [
        CompletedPart(part_number=p.part_number, etag=p.checksum_tag)
        for p in upload_session.sorted_parts()
    ]
    try:
        await storage.complete_multipart_upload(
            upload_session.storage_key, upload_session.remote_session_id, parts
        )
    except BackendRejected as exc:
        backend_code = (exc.details or {}).get("backend_code")
        if backend_code == "NoSuchUpload":
            metadata = await storage.head_object(upload_session.storage_key)
            if metadata is not None:
                return metadata
            await _fail(uow, upload_session, "Remote multipart upload no longer exists", now)
            raise UploadClosed(
                "Remote upload session no longer exists",
                details={"session_id": str(upload_session.id)},
            ) from exc

        suspects = await find_suspect_parts(storage, upload_session)
        await uow.upload_sessions.transition(
            upload_session.id,
            ACTIVE_SESSION_STATUSES,
            SessionStatus.COMPLETION_FAILED,
            last_error=exc.message,
            at=now,
        )
        await uow.commit()
        logger.warning(
            "Backend rejected completion of session %s (%s); suspect parts %s",
            upload_session.id,
            backend_code,
            suspects,
        )
        raise BackendRejected(
            exc.message,
            details={"backend_code": backend_code, "suspect_parts": suspects},
        ) from exc
    return None


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    session_id: UUID,
    requester_id: UUID,
    now: datetime | None = None,
) -> StoredAsset:
    now = now or datetime.now(timezone.utc)
    upload_session = await load_owned_session(uow, session_id, requester_id)
    if upload_session.status is SessionStatus.COMPLETED:
        return await _existing_asset(uow, upload_session)
    reject_if_closed(upload_session)
    await expire_if_due(uow, storage, upload_session, now)

    missing = upload_session.missing_part_numbers()
    if missing:
        raise Incomplete(
            f"{len(missing)} of {upload_session.total_chunks} parts not uploaded yet",
            details={"missing_parts": missing},
        )

    metadata = await _assemble(uow, storage, upload_session, now)
    if metadata is None:
        metadata = await storage.head_object(upload_session.storage_key)
    if metadata is None or metadata.content_length != upload_session.total_size_bytes:
        actual = metadata.content_length if metadata else None
        await _fail(
            uow,
            upload_session,
            f"Assembled object size {actual} does not match declared "
            f"{upload_session.total_size_bytes}",
            now,
        )
        raise VerificationFailed(
            "Assembled object does not match the declared upload",
            details={
                "expected_size_bytes": upload_session.total_size_bytes,
                "actual_size_bytes": actual,
            },
        )

    won = await uow.upload_sessions.transition(
        upload_session.id, ACTIVE_SESSION_STATUSES, SessionStatus.COMPLETED, at=now
    )
    if not won:
        current = await uow.upload_sessions.get(upload_session.id)
        if current and current.status is SessionStatus.COMPLETED:
            return await _existing_asset(uow, current)
        raise ConflictError("Upload session changed state during completion")

    asset = StoredAsset.from_verified_object(
        storage_key=upload_session.storage_key,
        owner_id=upload_session.owner_id,
        context_id=upload_session.context_id,
        filename=upload_session.filename,
        mime_type=upload_session.mime_type,
        size_bytes=metadata.content_length,
        checksum=metadata.checksum,
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
            session_id=upload_session.id,
            context_id=created.context_id,
        )
    )
    await uow.commit()
    logger.info("Recorded asset %s from upload session %s", created.id, upload_session.id)
    return created
