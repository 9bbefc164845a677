from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Enum, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.value_objects.upload_status import GrantStatus
from src.infrastructure.db.base import Base


class UploadGrantORM(Base):
    __tablename__ = "upload_grants"
    __table_args__ = (
        Index("ix_upload_grants_token", "token", unique=True),
        Index("ix_upload_grants_owner_id", "owner_id"),
        Index("ix_upload_grants_status_expires_at", "status", "expires_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    context_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    storage_key: Mapped[str] = mapped_column(String(2048), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    max_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    allowed_mime_types: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[GrantStatus] = mapped_column(
        Enum(GrantStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=GrantStatus.PENDING,
    )
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
