from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4


class ProcessingJobKind(str, Enum):
    TRANSCODE = "transcode"
    THUMBNAIL = "thumbnail"

    @classmethod
    def for_mime_type(cls, mime_type: str) -> ProcessingJobKind | None:
        if mime_type.startswith("video/"):
            return cls.TRANSCODE
        if mime_type.startswith("image/"):
            return cls.THUMBNAIL
        return None


@dataclass(slots=True)
class ProcessingJob:
    """Hand-off record for downstream media processing; consumed outside this service."""

    id: UUID
    asset_id: UUID
    kind: ProcessingJobKind
    status: str = "pending"
    payload: dict | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls, *, asset_id: UUID, kind: ProcessingJobKind, payload: dict | None = None
    ) -> ProcessingJob:
        return cls(id=uuid4(), asset_id=asset_id, kind=kind, payload=payload or {})
