from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.domain.models.upload_grant import UploadGrant


class UploadGrantsRepository(Protocol):
    async def add(self, grant: UploadGrant) -> UploadGrant: ...

    async def get_by_token(self, token: str) -> UploadGrant | None: ...

    # Conditional pending -> used; False when another request won
    async def mark_used(self, grant_id: UUID, used_at: datetime) -> bool: ...

    async def mark_expired(self, grant_id: UUID) -> bool: ...

    async def expire_stale(self, now: datetime) -> int: ...
