from __future__ import annotations

from typing import Any, Mapping


class AppError(Exception):
    code = "app_error"
    status_code = 400

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthError(AppError):
    code = "auth_error"
    status_code = 401


class PermissionDenied(AppError):
    code = "forbidden"
    status_code = 403


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class ValidationError(AppError):
    code = "validation_error"
    status_code = 422


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class PolicyDenied(AppError):
    """Role, category, size or mime type not permitted. Never retried automatically."""

    code = "policy_denied"
    status_code = 400


class RoleNotPermitted(PolicyDenied):
    code = "role_not_permitted"
    status_code = 403


class Incomplete(AppError):
    """Completion attempted before every part was reported."""

    code = "upload_incomplete"
    status_code = 409


class UploadClosed(AppError):
    code = "upload_closed"
    status_code = 410


class Expired(UploadClosed):
    """Past TTL. The client must start a fresh grant or session."""

    code = "upload_expired"


class VerificationFailed(AppError):
    code = "verification_failed"
    status_code = 422


class ObjectMissing(VerificationFailed):
    code = "upload_missing"
    status_code = 404


class BackendRejected(AppError):
    """Storage backend refused completion; re-upload the suspect parts and retry."""

    code = "backend_rejected"
    status_code = 502


class InfrastructureError(AppError):
    code = "infrastructure_error"
    status_code = 500


class StorageUnavailable(InfrastructureError):
    code = "storage_unavailable"
    status_code = 502
