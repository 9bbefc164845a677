from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from src.application.errors import PolicyDenied, RoleNotPermitted
from src.domain.value_objects.role import Role
from src.domain.value_objects.upload_category import UploadCategory

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB

STAFF_ROLES = frozenset({Role.ADMIN, Role.TEAM})
ADMIN_ONLY = frozenset({Role.ADMIN})
ANY_ROLE = frozenset(Role)


@dataclass(slots=True, frozen=True)
class CategoryRule:
    max_size_bytes: int
    allowed_roles: frozenset[Role]
    mime_patterns: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class PolicyDecision:
    allowed: bool
    category: UploadCategory | None
    max_size_bytes: int = 0
    allowed_mime_types: tuple[str, ...] = ()
    reason: str | None = None
    # True when the caller's role, not the file, is the problem
    role_denied: bool = False


DEFAULT_RULES: Mapping[UploadCategory, CategoryRule] = {
    UploadCategory.RAW: CategoryRule(
        max_size_bytes=5 * GiB,
        allowed_roles=STAFF_ROLES,
        mime_patterns=("video/*", "image/*", "application/zip", "application/x-rar-compressed"),
    ),
    UploadCategory.DELIVERABLE: CategoryRule(
        max_size_bytes=5 * GiB,
        allowed_roles=STAFF_ROLES,
        mime_patterns=(
            "video/mp4",
            "video/webm",
            "image/jpeg",
            "image/png",
            "image/webp",
            "application/pdf",
            "application/zip",
        ),
    ),
    UploadCategory.TEAM_WIP: CategoryRule(
        max_size_bytes=2 * GiB,
        allowed_roles=STAFF_ROLES,
        mime_patterns=(
            "video/*",
            "image/*",
            "application/zip",
            "application/x-rar-compressed",
            "application/pdf",
        ),
    ),
    UploadCategory.PORTFOLIO: CategoryRule(
        max_size_bytes=500 * MiB,
        allowed_roles=ADMIN_ONLY,
        mime_patterns=("video/mp4", "video/webm", "image/jpeg", "image/png", "image/webp"),
    ),
    UploadCategory.PUBLIC_ASSET: CategoryRule(
        max_size_bytes=50 * MiB,
        allowed_roles=ADMIN_ONLY,
        mime_patterns=("image/jpeg", "image/png", "image/webp", "image/svg+xml", "video/mp4"),
    ),
    UploadCategory.AVATAR: CategoryRule(
        max_size_bytes=5 * MiB,
        allowed_roles=ANY_ROLE,
        mime_patterns=("image/jpeg", "image/png", "image/webp", "image/gif"),
    ),
}


def normalize_mime_type(mime_type: str) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def mime_matches(mime_type: str, patterns: Iterable[str]) -> bool:
    """Exact matches plus `type/*` wildcard prefixes."""
    value = normalize_mime_type(mime_type)
    if not value:
        return False
    for pattern in patterns:
        pattern = pattern.lower()
        if pattern.endswith("/*"):
            if value.startswith(pattern[:-1]):
                return True
        elif value == pattern:
            return True
    return False


class UploadPolicy:
    def __init__(self, rules: Mapping[UploadCategory, CategoryRule] | None = None) -> None:
        self.rules = dict(rules or DEFAULT_RULES)

    def evaluate(
        self,
        role: Role,
        category: UploadCategory | str,
        mime_type: str,
        size: int,
    ) -> PolicyDecision:
        parsed = UploadCategory.parse(category)
        rule = self.rules.get(parsed) if parsed else None
        if rule is None:
            return PolicyDecision(
                allowed=False, category=parsed, reason=f"Unknown upload category: {category}"
            )
        base = {
            "category": parsed,
            "max_size_bytes": rule.max_size_bytes,
            "allowed_mime_types": rule.mime_patterns,
        }
        if role not in rule.allowed_roles:
            return PolicyDecision(
                allowed=False,
                reason=f"Role {role.value} may not upload {parsed.value} files",
                role_denied=True,
                **base,
            )
        if size is None or size <= 0:
            return PolicyDecision(allowed=False, reason="File size must be positive", **base)
        if size > rule.max_size_bytes:
            return PolicyDecision(
                allowed=False,
                reason=(
                    f"File too large. Max size for {parsed.value}: "
                    f"{round(rule.max_size_bytes / MiB)}MB"
                ),
                **base,
            )
        if not mime_matches(mime_type, rule.mime_patterns):
            return PolicyDecision(
                allowed=False,
                reason=f"File type {mime_type} not allowed for {parsed.value} uploads",
                **base,
            )
        return PolicyDecision(allowed=True, **base)

    def enforce(
        self,
        role: Role,
        category: UploadCategory | str,
        mime_type: str,
        size: int,
    ) -> PolicyDecision:
        decision = self.evaluate(role, category, mime_type, size)
        if decision.allowed:
            return decision
        details = {
            "category": decision.category.value if decision.category else str(category),
            "max_size_bytes": decision.max_size_bytes,
        }
        if decision.role_denied:
            raise RoleNotPermitted(decision.reason or "Role not permitted", details=details)
        raise PolicyDenied(decision.reason or "Upload not permitted", details=details)


default_policy = UploadPolicy()
