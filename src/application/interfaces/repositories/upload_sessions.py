from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol
from uuid import UUID

from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import SessionStatus


class UploadSessionsRepository(Protocol):
    async def add(self, session: UploadSession) -> UploadSession: ...

    async def get(self, session_id: UUID) -> UploadSession | None: ...

    async def upsert_part(
        self, session_id: UUID, part_number: int, checksum_tag: str, reported_at: datetime
    ) -> bool: ...

    async def transition(
        self,
        session_id: UUID,
        from_statuses: Iterable[SessionStatus],
        to_status: SessionStatus,
        *,
        last_error: str | None = None,
        at: datetime | None = None,
    ) -> bool: ...

    async def list_expired_active(self, now: datetime, limit: int = 100) -> list[UploadSession]: ...
