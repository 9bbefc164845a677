from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.models.activity_entry import ActivityEntry


class ActivityLogRepository(Protocol):
    async def add(self, entry: ActivityEntry) -> ActivityEntry: ...

    async def list_for_entity(self, entity_type: str, entity_id: UUID) -> list[ActivityEntry]: ...
