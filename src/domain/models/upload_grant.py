from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from src.domain.value_objects.upload_status import GrantStatus

GRANT_TTL_SECONDS = 15 * 60


def generate_grant_token() -> str:
    return secrets.token_urlsafe(32)


@dataclass(slots=True)
class UploadGrant:
    """
    Single-shot authorization to PUT one object at one storage key.
    Transitions pending -> used exactly once; never mutated afterwards.
    """

    id: UUID
    token: str
    owner_id: UUID
    storage_key: str
    category: str
    max_size_bytes: int
    expires_at: datetime
    allowed_mime_types: list[str] = field(default_factory=list)
    context_id: UUID | None = None
    status: GrantStatus = GrantStatus.PENDING
    used_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        *,
        owner_id: UUID,
        storage_key: str,
        category: str,
        max_size_bytes: int,
        allowed_mime_types: list[str],
        ttl_seconds: int,
        context_id: UUID | None = None,
    ) -> UploadGrant:
        now = datetime.now(timezone.utc)
        return cls(
            id=uuid4(),
            token=generate_grant_token(),
            owner_id=owner_id,
            context_id=context_id,
            storage_key=storage_key,
            category=category,
            max_size_bytes=max_size_bytes,
            allowed_mime_types=list(allowed_mime_types),
            status=GrantStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.status is GrantStatus.EXPIRED or now > self.expires_at
