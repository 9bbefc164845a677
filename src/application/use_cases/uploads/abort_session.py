from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from src.application.errors import ConflictError
from src.application.events.models import UploadAbortedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.uploads.session_guards import (
    load_owned_session,
    reject_if_completed,
)
from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import ACTIVE_SESSION_STATUSES, SessionStatus
from src.infrastructure.storage.ports import StorageService

logger = logging.getLogger(__name__)

_ALREADY_CLOSED = {SessionStatus.ABORTED, SessionStatus.EXPIRED, SessionStatus.FAILED}


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    session_id: UUID,
    requester_id: UUID,
    now: datetime | None = None,
) -> UploadSession:
    now = now or datetime.now(timezone.utc)
    upload_session = await load_owned_session(uow, session_id, requester_id)
    reject_if_completed(upload_session)
    if upload_session.status in _ALREADY_CLOSED:
        return upload_session

    # Release the backend first: a storage outage leaves the session untouched
    await storage.abort_multipart_upload(
        upload_session.storage_key, upload_session.remote_session_id
    )
    if not await uow.upload_sessions.transition(
        upload_session.id, ACTIVE_SESSION_STATUSES, SessionStatus.ABORTED, at=now
    ):
        current = await uow.upload_sessions.get(upload_session.id)
        if current and current.status is SessionStatus.COMPLETED:
            raise ConflictError("Upload session already completed")
        return current or upload_session

    uow.add_event(
        UploadAbortedEvent(
            actor_user_id=requester_id,
            session_id=upload_session.id,
            storage_key=upload_session.storage_key,
        )
    )
    await uow.commit()
    upload_session.status = SessionStatus.ABORTED
    logger.info("Aborted upload session %s", upload_session.id)
    return upload_session
