from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from src.domain.value_objects.upload_status import SessionStatus

MIN_CHUNK_SIZE = 5 * 1024 * 1024  # S3/R2 minimum for every part but the last
MAX_CHUNK_SIZE = 100 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024
MAX_PARTS = 10_000
SESSION_TTL_HOURS = 24
PART_URL_TTL_SECONDS = 3600


def clamp_chunk_size(requested: int | None, default: int = DEFAULT_CHUNK_SIZE) -> int:
    size = requested or default
    return max(MIN_CHUNK_SIZE, min(MAX_CHUNK_SIZE, size))


def compute_total_chunks(total_size: int, chunk_size: int) -> int:
    return math.ceil(total_size / chunk_size)


@dataclass(slots=True, frozen=True)
class UploadedPart:
    part_number: int
    checksum_tag: str
    reported_at: datetime | None = None


@dataclass(slots=True)
class UploadSession:
    id: UUID
    remote_session_id: str
    owner_id: UUID
    storage_key: str
    filename: str
    mime_type: str
    category: str
    total_size_bytes: int
    chunk_size_bytes: int
    total_chunks: int
    expires_at: datetime
    context_id: UUID | None = None
    status: SessionStatus = SessionStatus.IN_PROGRESS
    uploaded_parts: list[UploadedPart] = field(default_factory=list)
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def create(
        cls,
        *,
        remote_session_id: str,
        owner_id: UUID,
        storage_key: str,
        filename: str,
        mime_type: str,
        category: str,
        total_size_bytes: int,
        chunk_size_bytes: int,
        ttl_hours: int,
        context_id: UUID | None = None,
    ) -> UploadSession:
        now = datetime.now(timezone.utc)
        return cls(
            id=uuid4(),
            remote_session_id=remote_session_id,
            owner_id=owner_id,
            context_id=context_id,
            storage_key=storage_key,
            filename=filename,
            mime_type=mime_type,
            category=category,
            total_size_bytes=total_size_bytes,
            chunk_size_bytes=chunk_size_bytes,
            total_chunks=compute_total_chunks(total_size_bytes, chunk_size_bytes),
            status=SessionStatus.IN_PROGRESS,
            created_at=now,
            last_activity_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.status is SessionStatus.EXPIRED or now > self.expires_at

    def owns_part(self, part_number: int) -> bool:
        return 1 <= part_number <= self.total_chunks

    def part_size(self, part_number: int) -> int:
        if part_number < self.total_chunks:
            return self.chunk_size_bytes
        return self.total_size_bytes - self.chunk_size_bytes * (self.total_chunks - 1)

    def uploaded_part_numbers(self) -> set[int]:
        return {p.part_number for p in self.uploaded_parts}

    def missing_part_numbers(self) -> list[int]:
        done = self.uploaded_part_numbers()
        return [n for n in range(1, self.total_chunks + 1) if n not in done]

    def sorted_parts(self) -> list[UploadedPart]:
        return sorted(self.uploaded_parts, key=lambda p: p.part_number)

    @property
    def chunks_uploaded(self) -> int:
        return len(self.uploaded_part_numbers())

    @property
    def bytes_uploaded(self) -> int:
        return sum(self.part_size(n) for n in self.uploaded_part_numbers())

    @property
    def progress_percent(self) -> int:
        if self.total_chunks == 0:
            return 0
        return round(self.chunks_uploaded * 100 / self.total_chunks)

    @property
    def is_fully_uploaded(self) -> bool:
        return self.chunks_uploaded == self.total_chunks
