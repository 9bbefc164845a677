from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Enum, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.value_objects.upload_category import UploadCategory, Visibility
from src.infrastructure.db.base import Base


class StoredAssetORM(Base):
    __tablename__ = "stored_assets"
    __table_args__ = (
        Index("ix_stored_assets_storage_key", "storage_key", unique=True),
        Index("ix_stored_assets_owner_id", "owner_id"),
        Index("ix_stored_assets_context_id", "context_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    storage_key: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    context_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum: Mapped[str | None] = mapped_column(String(128), nullable=True)
    category: Mapped[UploadCategory] = mapped_column(
        Enum(UploadCategory, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
