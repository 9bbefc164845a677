from __future__ import annotations

import logging
from typing import Iterable

from src.application.events.models import (
    UploadAbortedEvent,
    UploadCompletedEvent,
    UploadStartedEvent,
)
from src.domain.models.activity_entry import ActivityEntry
from src.domain.models.processing_job import ProcessingJob, ProcessingJobKind
from src.infrastructure.db.session import SQLAlchemyUnitOfWork

logger = logging.getLogger(__name__)


async def dispatch_events(session_factory, events: Iterable[object]) -> None:
    """
    Dispatch events post-commit, one transaction per event so a failing handler
    never takes the others down with it. Safe to call in a background task.
    """
    events = list(events)
    if not events:
        return

    for event in events:
        try:
            async with SQLAlchemyUnitOfWork(session_factory) as uow:
                if isinstance(event, UploadStartedEvent):
                    await _handle_upload_started(uow, event)
                elif isinstance(event, UploadCompletedEvent):
                    await _handle_upload_completed(uow, event)
                elif isinstance(event, UploadAbortedEvent):
                    await _handle_upload_aborted(uow, event)
                else:
                    logger.warning("No handler for event %s", type(event).__name__)
                    continue
                await uow.commit()
        except Exception as e:
            logger.error("Error dispatching event %s: %s", type(event).__name__, e, exc_info=True)


async def _handle_upload_started(uow: SQLAlchemyUnitOfWork, e: UploadStartedEvent) -> None:
    if e.session_id:
        entity_type, entity_id = "upload_session", e.session_id
    else:
        entity_type, entity_id = "upload_grant", e.grant_id
    await uow.activity_log.add(
        ActivityEntry.create(
            user_id=e.actor_user_id,
            action="upload_started",
            entity_type=entity_type,
            entity_id=entity_id,
            payload={
                "storage_key": e.storage_key,
                "filename": e.filename,
                "mime_type": e.mime_type,
                "size_bytes": e.size_bytes,
                "category": e.category,
                "context_id": str(e.context_id) if e.context_id else None,
            },
        )
    )


async def _handle_upload_completed(uow: SQLAlchemyUnitOfWork, e: UploadCompletedEvent) -> None:
    await uow.activity_log.add(
        ActivityEntry.create(
            user_id=e.actor_user_id,
            action="upload_completed",
            entity_type="stored_asset",
            entity_id=e.asset_id,
            payload={
                "storage_key": e.storage_key,
                "size_bytes": e.size_bytes,
                "category": e.category,
                "session_id": str(e.session_id) if e.session_id else None,
                "grant_id": str(e.grant_id) if e.grant_id else None,
            },
        )
    )
    kind = ProcessingJobKind.for_mime_type(e.mime_type)
    if kind is None:
        return
    job = await uow.processing_jobs.add(
        ProcessingJob.create(
            asset_id=e.asset_id,
            kind=kind,
            payload={"storage_key": e.storage_key, "mime_type": e.mime_type},
        )
    )
    logger.info("Queued %s job %s for asset %s", kind.value, job.id, e.asset_id)


async def _handle_upload_aborted(uow: SQLAlchemyUnitOfWork, e: UploadAbortedEvent) -> None:
    await uow.activity_log.add(
        ActivityEntry.create(
            user_id=e.actor_user_id,
            action="upload_aborted",
            entity_type="upload_session",
            entity_id=e.session_id,
            payload={"storage_key": e.storage_key, "reason": e.reason},
        )
    )
