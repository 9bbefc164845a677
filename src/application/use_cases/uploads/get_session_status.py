from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.uploads.session_guards import load_owned_session, mark_expired
from src.domain.models.upload_session import UploadSession
from src.infrastructure.storage.ports import StorageService


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    session_id: UUID,
    requester_id: UUID,
    now: datetime | None = None,
) -> UploadSession:
    """Readable in every status; an overdue active session is reported as expired."""
    now = now or datetime.now(timezone.utc)
    upload_session = await load_owned_session(uow, session_id, requester_id)
    if upload_session.status.is_active() and upload_session.is_expired(now):
        await mark_expired(uow, storage, upload_session, now)
    return upload_session
