from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from src.application.errors import StorageUnavailable
from src.domain.value_objects.upload_status import ACTIVE_SESSION_STATUSES, SessionStatus
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.infrastructure.storage.ports import StorageService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepResult:
    sessions_expired: int = 0
    sessions_skipped: int = 0
    grants_expired: int = 0


async def sweep_expired_uploads(
    session_factory,
    storage: StorageService,
    *,
    now: datetime | None = None,
    batch_size: int = 100,
) -> SweepResult:
    """Release backend multipart uploads of overdue sessions and expire stale grants.

    A session whose remote abort fails stays active so the next run retries it.
    """
    now = now or datetime.now(timezone.utc)
    result = SweepResult()

    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        overdue = await uow.upload_sessions.list_expired_active(now, limit=batch_size)
        for upload_session in overdue:
            try:
                await storage.abort_multipart_upload(
                    upload_session.storage_key, upload_session.remote_session_id
                )
            except StorageUnavailable as exc:
                logger.error(
                    "Could not abort multipart upload for session %s: %s",
                    upload_session.id,
                    exc,
                )
                result.sessions_skipped += 1
                continue
            if await uow.upload_sessions.transition(
                upload_session.id, ACTIVE_SESSION_STATUSES, SessionStatus.EXPIRED, at=now
            ):
                result.sessions_expired += 1
            await uow.commit()

        result.grants_expired = await uow.upload_grants.expire_stale(now)
        await uow.commit()

    logger.info(
        "Upload sweep: %d sessions expired, %d skipped, %d grants expired",
        result.sessions_expired,
        result.sessions_skipped,
        result.grants_expired,
    )
    return result
