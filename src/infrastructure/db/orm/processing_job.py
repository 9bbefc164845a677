from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.models.processing_job import ProcessingJobKind
from src.infrastructure.db.base import Base


class ProcessingJobORM(Base):
    __tablename__ = "processing_jobs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    asset_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stored_assets.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    kind: Mapped[ProcessingJobKind] = mapped_column(
        Enum(ProcessingJobKind, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
