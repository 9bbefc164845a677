from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(slots=True)
class PresignedUpload:
    upload_url: str
    storage_key: str
    headers: dict[str, str] | None = None


@dataclass(slots=True, frozen=True)
class PartUrl:
    part_number: int
    url: str


@dataclass(slots=True, frozen=True)
class CompletedPart:
    part_number: int
    etag: str


@dataclass(slots=True)
class ObjectMetadata:
    content_length: int
    content_type: str | None = None
    etag: str | None = None

    @property
    def checksum(self) -> str | None:
        return self.etag.strip('"') if self.etag else None


class StorageService(Protocol):
    async def get_presigned_upload(
        self, key: str, content_type: str, *, expires_seconds: int = 900
    ) -> PresignedUpload: ...

    async def create_multipart_upload(self, key: str, content_type: str) -> str: ...

    async def get_presigned_part_url(
        self, key: str, upload_id: str, part_number: int, *, expires_seconds: int = 3600
    ) -> str: ...

    async def head_object(self, key: str) -> ObjectMetadata | None: ...

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: Sequence[CompletedPart]
    ) -> str | None: ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None: ...

    async def list_parts(self, key: str, upload_id: str) -> dict[int, str]: ...

    async def get_presigned_download(
        self, key: str, *, expires_seconds: int = 3600, filename: str | None = None
    ) -> str: ...

    async def get_public_url(self, key: str) -> str: ...
