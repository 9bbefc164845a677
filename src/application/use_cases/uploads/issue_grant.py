from __future__ import annotations

import logging
from dataclasses import dataclass

from src.application.events.models import UploadStartedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.policies.upload_policy import UploadPolicy, default_policy, normalize_mime_type
from src.domain.models.upload_grant import GRANT_TTL_SECONDS, UploadGrant
from src.domain.value_objects.role import Role
from src.domain.value_objects.storage_key import derive_storage_key
from src.domain.value_objects.upload_owner import UploadOwner
from src.infrastructure.storage.ports import StorageService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IssueGrantInput:
    category: str
    filename: str
    mime_type: str
    size_bytes: int


@dataclass(slots=True)
class IssuedGrant:
    grant: UploadGrant
    upload_url: str
    headers: dict[str, str] | None = None


async def execute(
    uow: UnitOfWork,
    storage: StorageService,
    *,
    role: Role,
    owner: UploadOwner,
    payload: IssueGrantInput,
    ttl_seconds: int = GRANT_TTL_SECONDS,
    policy: UploadPolicy = default_policy,
) -> IssuedGrant:
    decision = policy.enforce(role, payload.category, payload.mime_type, payload.size_bytes)
    mime_type = normalize_mime_type(payload.mime_type)
    storage_key = derive_storage_key(decision.category, payload.filename, owner)

    # Signing happens before any row exists; a failure here leaves nothing behind
    presigned = await storage.get_presigned_upload(
        storage_key, mime_type, expires_seconds=ttl_seconds
    )

    grant = UploadGrant.create(
        owner_id=owner.user_id,
        context_id=owner.context_id,
        storage_key=storage_key,
        category=decision.category.value,
        max_size_bytes=payload.size_bytes,
        allowed_mime_types=[mime_type],
        ttl_seconds=ttl_seconds,
    )
    created = await uow.upload_grants.add(grant)
    uow.add_event(
        UploadStartedEvent(
            actor_user_id=owner.user_id,
            storage_key=storage_key,
            filename=payload.filename,
            mime_type=mime_type,
            size_bytes=payload.size_bytes,
            category=decision.category.value,
            grant_id=created.id,
            context_id=owner.context_id,
        )
    )
    await uow.commit()
    logger.info("Issued upload grant %s for %s", created.id, storage_key)
    return IssuedGrant(grant=created, upload_url=presigned.upload_url, headers=presigned.headers)
