from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(slots=True, frozen=True)
class UploadOwner:
    """Who an upload belongs to and which work item it is attached to.

    `project_id` is persisted as the record's `context_id`; `client_id` only
    shapes the storage key.
    """

    user_id: UUID
    project_id: UUID | None = None
    client_id: UUID | None = None

    @property
    def context_id(self) -> UUID | None:
        return self.project_id
