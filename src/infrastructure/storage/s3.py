from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.application.errors import BackendRejected, StorageUnavailable
from src.infrastructure.storage.ports import (
    CompletedPart,
    ObjectMetadata,
    PresignedUpload,
    StorageService,
)

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}
# Completion errors the client can act on by re-uploading parts (or restarting)
_REJECTION_CODES = {"InvalidPart", "InvalidPartOrder", "EntityTooSmall", "NoSuchUpload"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


@dataclass(slots=True)
class S3StorageService(StorageService):
    """S3-compatible backend (AWS S3 or Cloudflare R2 through `endpoint_url`).

    One instance is built by the app factory and shared for the process lifetime.
    boto3 is blocking, so every client call runs in a worker thread.
    """

    bucket: str
    region: str = "auto"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    public_url_base: str | None = None
    _s3: Any = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._s3 = boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=Config(signature_version="s3v4", retries={"max_attempts": 3}),
        )

    async def _call(self, operation: str, **params: Any) -> Any:
        return await asyncio.to_thread(getattr(self._s3, operation), **params)

    async def _presign(self, operation: str, params: dict[str, Any], expires_seconds: int) -> str:
        return await asyncio.to_thread(
            self._s3.generate_presigned_url, operation, Params=params, ExpiresIn=expires_seconds
        )

    async def get_presigned_upload(
        self, key: str, content_type: str, *, expires_seconds: int = 900
    ) -> PresignedUpload:
        try:
            url = await self._presign(
                "put_object",
                {"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                expires_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Presigning PUT for %s failed: %s", key, exc)
            raise StorageUnavailable("Could not sign upload URL") from exc
        return PresignedUpload(
            upload_url=url, storage_key=key, headers={"Content-Type": content_type}
        )

    async def create_multipart_upload(self, key: str, content_type: str) -> str:
        try:
            response = await self._call(
                "create_multipart_upload", Bucket=self.bucket, Key=key, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Creating multipart upload for %s failed: %s", key, exc)
            raise StorageUnavailable("Could not open multipart upload") from exc
        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageUnavailable("Storage backend returned no multipart upload id")
        return upload_id

    async def get_presigned_part_url(
        self, key: str, upload_id: str, part_number: int, *, expires_seconds: int = 3600
    ) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "UploadId": upload_id,
            "PartNumber": part_number,
        }
        try:
            return await self._presign("upload_part", params, expires_seconds)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Presigning part %d of %s failed: %s", part_number, key, exc)
            raise StorageUnavailable("Could not sign part upload URL") from exc

    async def head_object(self, key: str) -> ObjectMetadata | None:
        try:
            response = await self._call("head_object", Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_OBJECT_CODES:
                return None
            raise StorageUnavailable("Could not read object metadata") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable("Could not read object metadata") from exc
        return ObjectMetadata(
            content_length=int(response.get("ContentLength") or 0),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
        )

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: Sequence[CompletedPart]
    ) -> str | None:
        try:
            response = await self._call(
                "complete_multipart_upload",
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [{"PartNumber": p.part_number, "ETag": p.etag} for p in parts]
                },
            )
        except ClientError as exc:
            code = _error_code(exc)
            if code in _REJECTION_CODES:
                message = exc.response.get("Error", {}).get("Message") or code
                raise BackendRejected(message, details={"backend_code": code}) from exc
            raise StorageUnavailable("Could not complete multipart upload") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable("Could not complete multipart upload") from exc
        return response.get("Location")

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            await self._call(
                "abort_multipart_upload", Bucket=self.bucket, Key=key, UploadId=upload_id
            )
        except ClientError as exc:
            if _error_code(exc) == "NoSuchUpload":
                logger.info("Multipart upload %s for %s already gone", upload_id, key)
                return
            raise StorageUnavailable("Could not abort multipart upload") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable("Could not abort multipart upload") from exc

    async def list_parts(self, key: str, upload_id: str) -> dict[int, str]:
        parts: dict[int, str] = {}
        marker = 0
        try:
            while True:
                response = await self._call(
                    "list_parts",
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumberMarker=marker,
                )
                for part in response.get("Parts", []):
                    parts[int(part["PartNumber"])] = part.get("ETag", "")
                if not response.get("IsTruncated"):
                    break
                marker = int(response.get("NextPartNumberMarker") or 0)
        except (BotoCoreError, ClientError) as exc:
            raise StorageUnavailable("Could not list uploaded parts") from exc
        return parts

    async def get_presigned_download(
        self, key: str, *, expires_seconds: int = 3600, filename: str | None = None
    ) -> str:
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        try:
            return await self._presign("get_object", params, expires_seconds)
        except (BotoCoreError, ClientError) as exc:
            raise StorageUnavailable("Could not sign download URL") from exc

    async def get_public_url(self, key: str) -> str:
        if self.public_url_base:
            base = self.public_url_base.rstrip("/")
            return f"{base}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        # default AWS URL
        if self.region == "us-east-1":
            return f"https://{self.bucket}.s3.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def build_storage_service(settings) -> S3StorageService | None:
    if not settings.s3_bucket:
        return None
    secret = settings.s3_secret_access_key
    return S3StorageService(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=secret.get_secret_value() if secret else None,
        public_url_base=settings.s3_public_url_base,
    )
