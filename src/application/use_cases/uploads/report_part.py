from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from src.application.errors import ConflictError, Expired, NotFound, ValidationError
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.uploads.session_guards import (
    expire_if_due,
    load_owned_session,
    reject_if_closed,
    reject_if_completed,
)
from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import SessionStatus
from src.infrastructure.storage.ports import StorageService


async def _reject_closed_since(uow: UnitOfWork, session_id: UUID) -> None:
    current = await uow.upload_sessions.get(session_id)
    if not current:
        raise NotFound("Upload session not found")
    if current.status is SessionStatus.EXPIRED:
        raise Expired("Upload session expired", details={"session_id": str(session_id)})
    reject_if_completed(current)
    reject_if_closed(current)
    raise ConflictError("Upload session changed state while recording the part")


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    session_id: UUID,
    requester_id: UUID,
    part_number: int,
    checksum_tag: str,
    now: datetime | None = None,
) -> UploadSession:
    now = now or datetime.now(timezone.utc)
    upload_session = await load_owned_session(uow, session_id, requester_id)
    reject_if_completed(upload_session)
    reject_if_closed(upload_session)
    await expire_if_due(uow, storage, upload_session, now)

    if not upload_session.owns_part(part_number):
        raise ValidationError(
            f"Part number must be between 1 and {upload_session.total_chunks}",
            details={"part_number": part_number, "total_chunks": upload_session.total_chunks},
        )
    tag = (checksum_tag or "").strip()
    if not tag:
        raise ValidationError("Checksum tag is required", details={"part_number": part_number})

    if upload_session.status is SessionStatus.COMPLETION_FAILED:
        # A replacement part makes completion worth retrying
        await uow.upload_sessions.transition(
            upload_session.id,
            [SessionStatus.COMPLETION_FAILED],
            SessionStatus.IN_PROGRESS,
            at=now,
        )
    recorded = await uow.upload_sessions.upsert_part(upload_session.id, part_number, tag, now)
    if not recorded:
        # Closed by an abort, expiry or completion after the checks above
        await _reject_closed_since(uow, upload_session.id)
    await uow.commit()

    refreshed = await uow.upload_sessions.get(upload_session.id)
    if not refreshed:
        raise NotFound("Upload session not found")
    return refreshed
