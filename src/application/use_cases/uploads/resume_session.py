from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.uploads.init_session import sign_part_urls
from src.application.use_cases.uploads.session_guards import (
    expire_if_due,
    load_owned_session,
    reject_if_closed,
    reject_if_completed,
)
from src.domain.models.upload_session import PART_URL_TTL_SECONDS, UploadSession
from src.infrastructure.storage.ports import PartUrl, StorageService


@dataclass(slots=True)
class ResumedSession:
    session: UploadSession
    remaining_part_urls: list[PartUrl]


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    session_id: UUID,
    requester_id: UUID,
    part_url_ttl_seconds: int = PART_URL_TTL_SECONDS,
    now: datetime | None = None,
) -> ResumedSession:
    """Fresh URLs for the parts not yet recorded, and nothing else."""
    now = now or datetime.now(timezone.utc)
    upload_session = await load_owned_session(uow, session_id, requester_id)
    reject_if_completed(upload_session)
    reject_if_closed(upload_session)
    await expire_if_due(uow, storage, upload_session, now)

    missing = upload_session.missing_part_numbers()
    urls = await sign_part_urls(storage, upload_session, missing, part_url_ttl_seconds)
    return ResumedSession(session=upload_session, remaining_part_urls=urls)
