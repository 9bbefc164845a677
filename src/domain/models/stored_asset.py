from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from src.domain.value_objects.storage_key import classify_storage_key, filename_from_key
from src.domain.value_objects.upload_category import UploadCategory, Visibility


@dataclass(slots=True)
class StoredAsset:
    id: UUID
    storage_key: str
    owner_id: UUID
    filename: str
    mime_type: str
    size_bytes: int
    category: UploadCategory
    visibility: Visibility
    context_id: UUID | None = None
    checksum: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_verified_object(
        cls,
        *,
        storage_key: str,
        owner_id: UUID,
        mime_type: str,
        size_bytes: int,
        context_id: UUID | None = None,
        checksum: str | None = None,
        filename: str | None = None,
    ) -> StoredAsset:
        """Category and visibility always come from the key, never from the client."""
        classification = classify_storage_key(storage_key)
        return cls(
            id=uuid4(),
            storage_key=storage_key,
            owner_id=owner_id,
            context_id=context_id,
            filename=filename or filename_from_key(storage_key),
            mime_type=mime_type,
            size_bytes=size_bytes,
            checksum=checksum,
            category=classification.category,
            visibility=classification.visibility,
            created_at=datetime.now(timezone.utc),
        )

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC
