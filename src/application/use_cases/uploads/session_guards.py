from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from src.application.errors import (
    ConflictError,
    Expired,
    NotFound,
    PermissionDenied,
    StorageUnavailable,
    UploadClosed,
)
from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import ACTIVE_SESSION_STATUSES, SessionStatus
from src.infrastructure.storage.ports import StorageService

logger = logging.getLogger(__name__)


async def load_owned_session(
    uow: UnitOfWork, session_id: UUID, requester_id: UUID
) -> UploadSession:
    upload_session = await uow.upload_sessions.get(session_id)
    if not upload_session:
        raise NotFound("Upload session not found")
    if upload_session.owner_id != requester_id:
        raise PermissionDenied("Upload session belongs to another user")
    return upload_session


def reject_if_completed(upload_session: UploadSession) -> None:
    if upload_session.status is SessionStatus.COMPLETED:
        raise ConflictError(
            "Upload session already completed", details={"session_id": str(upload_session.id)}
        )


def reject_if_closed(upload_session: UploadSession) -> None:
    if upload_session.status in (SessionStatus.ABORTED, SessionStatus.FAILED):
        raise UploadClosed(
            f"Upload session is {upload_session.status.value}",
            details={"session_id": str(upload_session.id), "status": upload_session.status.value},
        )


async def expire_if_due(
    uow: UnitOfWork,
    storage: StorageService,
    upload_session: UploadSession,
    now: datetime,
) -> None:
    """Raise Expired for sessions past their TTL, persisting the flip first."""
    if upload_session.status is SessionStatus.EXPIRED:
        raise Expired("Upload session expired", details={"session_id": str(upload_session.id)})
    if not upload_session.is_expired(now):
        return

    await mark_expired(uow, storage, upload_session, now)
    raise Expired("Upload session expired", details={"session_id": str(upload_session.id)})


async def mark_expired(
    uow: UnitOfWork,
    storage: StorageService,
    upload_session: UploadSession,
    now: datetime,
) -> None:
    flipped = await uow.upload_sessions.transition(
        upload_session.id, ACTIVE_SESSION_STATUSES, SessionStatus.EXPIRED, at=now
    )
    await uow.commit()
    if flipped:
        logger.info("Upload session %s expired", upload_session.id)
        await release_remote_session(storage, upload_session)
        upload_session.status = SessionStatus.EXPIRED


async def release_remote_session(storage: StorageService, upload_session: UploadSession) -> bool:
    """Abort the backend multipart upload; failures are logged, not raised."""
    try:
        await storage.abort_multipart_upload(
            upload_session.storage_key, upload_session.remote_session_id
        )
    except StorageUnavailable:
        logger.warning(
            "Could not release multipart upload %s for session %s",
            upload_session.remote_session_id,
            upload_session.id,
            exc_info=True,
        )
        return False
    return True
