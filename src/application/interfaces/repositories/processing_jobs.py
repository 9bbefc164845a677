from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.models.processing_job import ProcessingJob


class ProcessingJobsRepository(Protocol):
    async def add(self, job: ProcessingJob) -> ProcessingJob: ...

    async def list_for_asset(self, asset_id: UUID) -> list[ProcessingJob]: ...
