from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.domain.models.upload_session import UploadSession
from src.domain.value_objects.upload_status import SessionStatus


class GrantRequest(BaseModel):
    category: str = Field(examples=["avatar", "deliverable"])
    filename: str = Field(min_length=1, max_length=1024)
    mime_type: str = Field(examples=["image/jpeg", "video/mp4"])
    size_bytes: int = Field(gt=0)
    project_id: UUID | None = None
    client_id: UUID | None = None


class GrantResponse(BaseModel):
    upload_url: str
    storage_key: str
    token: str
    expires_at: datetime
    max_size_bytes: int
    headers: dict[str, str] | None = None


class CompleteGrantRequest(BaseModel):
    token: str = Field(min_length=1)
    checksum: str | None = None


class InitSessionRequest(BaseModel):
    category: str = Field(examples=["raw", "deliverable"])
    filename: str = Field(min_length=1, max_length=1024)
    mime_type: str = Field(examples=["video/mp4"])
    total_size_bytes: int = Field(gt=0)
    chunk_size_bytes: int | None = Field(default=None, gt=0)
    project_id: UUID | None = None
    client_id: UUID | None = None


class PartUrlResponse(BaseModel):
    part_number: int
    url: str


class InitSessionResponse(BaseModel):
    session_id: UUID
    storage_key: str
    chunk_size_bytes: int
    total_chunks: int
    expires_at: datetime
    part_urls: list[PartUrlResponse]


class UploadedPartResponse(BaseModel):
    part_number: int
    checksum_tag: str


class SessionProgressResponse(BaseModel):
    session_id: UUID
    status: SessionStatus
    chunks_uploaded: int
    total_chunks: int
    bytes_uploaded: int
    total_size_bytes: int
    progress: int
    is_complete: bool

    @classmethod
    def from_session(cls, upload_session: UploadSession) -> SessionProgressResponse:
        return cls(
            session_id=upload_session.id,
            status=upload_session.status,
            chunks_uploaded=upload_session.chunks_uploaded,
            total_chunks=upload_session.total_chunks,
            bytes_uploaded=upload_session.bytes_uploaded,
            total_size_bytes=upload_session.total_size_bytes,
            progress=upload_session.progress_percent,
            is_complete=upload_session.is_fully_uploaded,
        )


class SessionStatusResponse(SessionProgressResponse):
    storage_key: str
    filename: str
    mime_type: str
    category: str
    chunk_size_bytes: int
    uploaded_parts: list[int]
    last_error: str | None = None
    created_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_session(cls, upload_session: UploadSession) -> SessionStatusResponse:
        progress = SessionProgressResponse.from_session(upload_session)
        return cls(
            **progress.model_dump(),
            storage_key=upload_session.storage_key,
            filename=upload_session.filename,
            mime_type=upload_session.mime_type,
            category=upload_session.category,
            chunk_size_bytes=upload_session.chunk_size_bytes,
            uploaded_parts=sorted(upload_session.uploaded_part_numbers()),
            last_error=upload_session.last_error,
            created_at=upload_session.created_at,
            expires_at=upload_session.expires_at,
            completed_at=upload_session.completed_at,
        )


class ResumeSessionResponse(BaseModel):
    session_id: UUID
    storage_key: str
    chunk_size_bytes: int
    total_chunks: int
    chunks_uploaded: int
    bytes_uploaded: int
    expires_at: datetime
    uploaded_parts: list[UploadedPartResponse]
    remaining_part_urls: list[PartUrlResponse]


class ReportPartRequest(BaseModel):
    checksum_tag: str = Field(min_length=1, max_length=255, alias="etag")

    model_config = {"populate_by_name": True}
