from __future__ import annotations

import logging
from dataclasses import dataclass

from src.application.errors import AppError, ValidationError
from src.application.events.models import UploadStartedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.policies.upload_policy import UploadPolicy, default_policy, normalize_mime_type
from src.domain.models.upload_session import (
    DEFAULT_CHUNK_SIZE,
    MAX_PARTS,
    PART_URL_TTL_SECONDS,
    SESSION_TTL_HOURS,
    UploadSession,
    clamp_chunk_size,
    compute_total_chunks,
)
from src.domain.value_objects.role import Role
from src.domain.value_objects.storage_key import derive_storage_key, sanitize_filename
from src.domain.value_objects.upload_owner import UploadOwner
from src.infrastructure.storage.ports import PartUrl, StorageService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InitSessionInput:
    category: str
    filename: str
    mime_type: str
    total_size_bytes: int
    chunk_size_bytes: int | None = None


@dataclass(slots=True)
class StartedSession:
    session: UploadSession
    part_urls: list[PartUrl]


async def sign_part_urls(
    storage: StorageService,
    upload_session: UploadSession,
    part_numbers: list[int],
    ttl_seconds: int,
) -> list[PartUrl]:
    urls: list[PartUrl] = []
    for part_number in part_numbers:
        url = await storage.get_presigned_part_url(
            upload_session.storage_key,
            upload_session.remote_session_id,
            part_number,
            expires_seconds=ttl_seconds,
        )
        urls.append(PartUrl(part_number=part_number, url=url))
    return urls


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    role: Role,
    owner: UploadOwner,
    payload: InitSessionInput,
    session_ttl_hours: int = SESSION_TTL_HOURS,
    part_url_ttl_seconds: int = PART_URL_TTL_SECONDS,
    default_chunk_size: int = DEFAULT_CHUNK_SIZE,
    policy: UploadPolicy = default_policy,
) -> StartedSession:
    decision = policy.enforce(role, payload.category, payload.mime_type, payload.total_size_bytes)
    mime_type = normalize_mime_type(payload.mime_type)
    chunk_size = clamp_chunk_size(payload.chunk_size_bytes, default_chunk_size)
    total_chunks = compute_total_chunks(payload.total_size_bytes, chunk_size)
    if total_chunks > MAX_PARTS:
        raise ValidationError(
            f"File needs {total_chunks} parts; the storage backend accepts at most {MAX_PARTS}",
            details={"total_chunks": total_chunks, "chunk_size_bytes": chunk_size},
        )

    storage_key = derive_storage_key(decision.category, payload.filename, owner)
    upload_id = await storage.create_multipart_upload(storage_key, mime_type)

    try:
        upload_session = UploadSession.create(
            remote_session_id=upload_id,
            owner_id=owner.user_id,
            context_id=owner.context_id,
            storage_key=storage_key,
            filename=sanitize_filename(payload.filename),
            mime_type=mime_type,
            category=decision.category.value,
            total_size_bytes=payload.total_size_bytes,
            chunk_size_bytes=chunk_size,
            ttl_hours=session_ttl_hours,
        )
        part_urls = await sign_part_urls(
            storage,
            upload_session,
            list(range(1, upload_session.total_chunks + 1)),
            part_url_ttl_seconds,
        )
        created = await uow.upload_sessions.add(upload_session)
        uow.add_event(
            UploadStartedEvent(
                actor_user_id=owner.user_id,
                storage_key=storage_key,
                filename=upload_session.filename,
                mime_type=mime_type,
                size_bytes=payload.total_size_bytes,
                category=decision.category.value,
                session_id=created.id,
                context_id=owner.context_id,
            )
        )
        await uow.commit()
    except Exception:
        # Never leave a multipart upload open without a committed session row
        logger.warning("Init of %s failed; aborting multipart upload %s", storage_key, upload_id)
        try:
            await storage.abort_multipart_upload(storage_key, upload_id)
        except AppError:
            logger.error("Could not abort multipart upload %s", upload_id, exc_info=True)
        raise

    logger.info(
        "Opened upload session %s (%d parts of %d bytes) for %s",
        created.id,
        created.total_chunks,
        created.chunk_size_bytes,
        storage_key,
    )
    return StartedSession(session=created, part_urls=part_urls)
