from __future__ import annotations

from typing import Protocol

from src.application.interfaces.repositories.activity_log import ActivityLogRepository
from src.application.interfaces.repositories.processing_jobs import ProcessingJobsRepository
from src.application.interfaces.repositories.stored_assets import StoredAssetsRepository
from src.application.interfaces.repositories.upload_grants import UploadGrantsRepository
from src.application.interfaces.repositories.upload_sessions import UploadSessionsRepository
from src.application.interfaces.repositories.user_profiles import UserProfilesRepository


class UnitOfWork(Protocol):
    upload_grants: UploadGrantsRepository
    upload_sessions: UploadSessionsRepository
    stored_assets: StoredAssetsRepository
    user_profiles: UserProfilesRepository
    processing_jobs: ProcessingJobsRepository
    activity_log: ActivityLogRepository
    # Domain events collected during the transaction
    events: list

    async def __aenter__(self) -> UnitOfWork: ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    # Record a domain event during the transaction
    def add_event(self, event: object) -> None: ...

    # Drain collected events (used for post-commit dispatch)
    def drain_events(self) -> list: ...
