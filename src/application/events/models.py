from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class UploadStartedEvent:
    actor_user_id: UUID
    storage_key: str
    filename: str
    mime_type: str
    size_bytes: int
    category: str
    # Exactly one of these is set
    grant_id: UUID | None = None
    session_id: UUID | None = None
    context_id: UUID | None = None


@dataclass(frozen=True)
class UploadCompletedEvent:
    actor_user_id: UUID
    asset_id: UUID
    storage_key: str
    mime_type: str
    size_bytes: int
    category: str
    session_id: UUID | None = None
    grant_id: UUID | None = None
    context_id: UUID | None = None


@dataclass(frozen=True)
class UploadAbortedEvent:
    actor_user_id: UUID
    session_id: UUID
    storage_key: str
    reason: str = "aborted"
