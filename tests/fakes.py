from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Sequence
from uuid import uuid4

from src.application.errors import BackendRejected, StorageUnavailable
from src.infrastructure.storage.ports import (
    CompletedPart,
    ObjectMetadata,
    PresignedUpload,
    StorageService,
)


def make_etag(payload: str) -> str:
    return '"' + hashlib.md5(payload.encode()).hexdigest() + '"'


@dataclass
class FakeMultipart:
    key: str
    content_type: str
    parts: dict[int, tuple[str, int]] = field(default_factory=dict)


class InMemoryStorage(StorageService):
    """Storage double: objects and multipart uploads live in dicts, every call is logged."""

    def __init__(self) -> None:
        self.objects: dict[str, ObjectMetadata] = {}
        self.multipart: dict[str, FakeMultipart] = {}
        self.calls: list[tuple] = []
        self.completed_part_orders: list[list[int]] = []
        self.fail_signing = False
        self.reject_completion_with: str | None = None

    # Helpers standing in for the client's direct transfers
    def put_object(self, key: str, size: int, content_type: str = "application/octet-stream"):
        self.objects[key] = ObjectMetadata(
            content_length=size, content_type=content_type, etag=make_etag(f"{key}:{size}")
        )

    def upload_part(self, upload_id: str, part_number: int, size: int) -> str:
        etag = make_etag(f"{upload_id}:{part_number}:{size}")
        self.multipart[upload_id].parts[part_number] = (etag, size)
        return etag

    async def get_presigned_upload(
        self, key: str, content_type: str, *, expires_seconds: int = 900
    ) -> PresignedUpload:
        self.calls.append(("presign_put", key))
        if self.fail_signing:
            raise StorageUnavailable("Could not sign upload URL")
        return PresignedUpload(
            upload_url=f"https://storage.test/{key}?X-Amz-Expires={expires_seconds}",
            storage_key=key,
            headers={"Content-Type": content_type},
        )

    async def create_multipart_upload(self, key: str, content_type: str) -> str:
        self.calls.append(("create_multipart", key))
        upload_id = uuid4().hex
        self.multipart[upload_id] = FakeMultipart(key=key, content_type=content_type)
        return upload_id

    async def get_presigned_part_url(
        self, key: str, upload_id: str, part_number: int, *, expires_seconds: int = 3600
    ) -> str:
        self.calls.append(("presign_part", key, part_number))
        if self.fail_signing:
            raise StorageUnavailable("Could not sign part upload URL")
        return f"https://storage.test/{key}?uploadId={upload_id}&partNumber={part_number}"

    async def head_object(self, key: str) -> ObjectMetadata | None:
        self.calls.append(("head", key))
        return self.objects.get(key)

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: Sequence[CompletedPart]
    ) -> str | None:
        self.calls.append(("complete_multipart", key))
        self.completed_part_orders.append([p.part_number for p in parts])
        if self.reject_completion_with:
            code, self.reject_completion_with = self.reject_completion_with, None
            raise BackendRejected(f"{code} from backend", details={"backend_code": code})
        upload = self.multipart.get(upload_id)
        if upload is None:
            raise BackendRejected("NoSuchUpload", details={"backend_code": "NoSuchUpload"})
        numbers = [p.part_number for p in parts]
        if numbers != sorted(numbers):
            raise BackendRejected("InvalidPartOrder", details={"backend_code": "InvalidPartOrder"})
        for part in parts:
            stored = upload.parts.get(part.part_number)
            if stored is None or stored[0].strip('"') != part.etag.strip('"'):
                raise BackendRejected("InvalidPart", details={"backend_code": "InvalidPart"})
        size = sum(upload.parts[p.part_number][1] for p in parts)
        self.objects[key] = ObjectMetadata(
            content_length=size,
            content_type=upload.content_type,
            etag=make_etag(f"{upload_id}:assembled"),
        )
        del self.multipart[upload_id]
        return f"https://storage.test/{key}"

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self.calls.append(("abort_multipart", key))
        self.multipart.pop(upload_id, None)

    async def list_parts(self, key: str, upload_id: str) -> dict[int, str]:
        self.calls.append(("list_parts", key))
        upload = self.multipart.get(upload_id)
        if upload is None:
            return {}
        return {n: etag for n, (etag, _size) in upload.parts.items()}

    async def get_presigned_download(
        self, key: str, *, expires_seconds: int = 3600, filename: str | None = None
    ) -> str:
        self.calls.append(("presign_get", key))
        return f"https://storage.test/{key}?signed=1&X-Amz-Expires={expires_seconds}"

    async def get_public_url(self, key: str) -> str:
        return f"https://cdn.test/{key}"

    def storage_call_names(self) -> list[str]:
        return [c[0] for c in self.calls]
