from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4


@dataclass(slots=True)
class ActivityEntry:
    id: UUID
    user_id: UUID
    action: str  # 'upload_started', 'upload_completed', 'upload_aborted'
    entity_type: str | None = None
    entity_id: UUID | None = None
    payload: dict | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        *,
        user_id: UUID,
        action: str,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        payload: dict | None = None,
    ) -> ActivityEntry:
        return cls(
            id=uuid4(),
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
