from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass

from src.domain.value_objects.upload_category import UploadCategory, Visibility
from src.domain.value_objects.upload_owner import UploadOwner

MAX_FILENAME_LENGTH = 200
GENERIC_PREFIX = "uploads"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(slots=True, frozen=True)
class KeyClassification:
    category: UploadCategory
    visibility: Visibility

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC


# Ordered: first match wins. Keys produced by derive_storage_key always land
# on the same row they were built from.
_KEY_GRAMMAR: tuple[tuple[re.Pattern[str], UploadCategory, Visibility], ...] = (
    (re.compile(r"^public/portfolio/"), UploadCategory.PORTFOLIO, Visibility.PUBLIC),
    (re.compile(r"^public/website-assets/"), UploadCategory.PUBLIC_ASSET, Visibility.PUBLIC),
    (re.compile(r"^public/"), UploadCategory.OTHER, Visibility.PUBLIC),
    (re.compile(r"^profiles/[^/]+/avatar/"), UploadCategory.AVATAR, Visibility.PUBLIC),
    (
        re.compile(r"^clients/[^/]+/[^/]+/deliverables/"),
        UploadCategory.DELIVERABLE,
        Visibility.RESTRICTED,
    ),
    (re.compile(r"^deliverables/"), UploadCategory.DELIVERABLE, Visibility.RESTRICTED),
    (re.compile(r"^clients/[^/]+/[^/]+/raw/"), UploadCategory.RAW, Visibility.RESTRICTED),
    (re.compile(r"^raw/"), UploadCategory.RAW, Visibility.RESTRICTED),
    (
        re.compile(r"^team/[^/]+/work_in_progress/"),
        UploadCategory.TEAM_WIP,
        Visibility.RESTRICTED,
    ),
)


def sanitize_filename(filename: str) -> str:
    """Reduce a client filename to a single safe key segment."""
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    # Keep the tail so the extension survives truncation
    name = name[-MAX_FILENAME_LENGTH:]
    return name or "file"


def default_disambiguator() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def derive_storage_key(
    category: UploadCategory | str,
    filename: str,
    owner: UploadOwner,
    *,
    disambiguator: str | None = None,
) -> str:
    """Build a unique storage key whose prefix encodes category and ownership.

    Unknown categories fall back to the generic `uploads/` prefix instead of
    failing.
    """
    unique = f"{disambiguator or default_disambiguator()}_{sanitize_filename(filename)}"
    project = str(owner.project_id) if owner.project_id else "general"
    parsed = UploadCategory.parse(category)

    if parsed is UploadCategory.PORTFOLIO:
        return f"public/portfolio/{project}/{unique}"
    if parsed is UploadCategory.PUBLIC_ASSET:
        return f"public/website-assets/{unique}"
    if parsed is UploadCategory.AVATAR:
        return f"profiles/{owner.user_id}/avatar/{unique}"
    if parsed is UploadCategory.DELIVERABLE:
        if owner.client_id and owner.project_id:
            return f"clients/{owner.client_id}/{owner.project_id}/deliverables/{unique}"
        return f"deliverables/{project}/{unique}"
    if parsed is UploadCategory.RAW:
        if owner.client_id and owner.project_id:
            return f"clients/{owner.client_id}/{owner.project_id}/raw/{unique}"
        return f"raw/{project}/{unique}"
    if parsed is UploadCategory.TEAM_WIP:
        return f"team/{owner.user_id}/work_in_progress/{unique}"
    return f"{GENERIC_PREFIX}/{unique}"


def classify_storage_key(key: str) -> KeyClassification:
    """Recover category and visibility from a server-derived key."""
    for pattern, category, visibility in _KEY_GRAMMAR:
        if pattern.match(key):
            return KeyClassification(category=category, visibility=visibility)
    return KeyClassification(category=UploadCategory.OTHER, visibility=Visibility.RESTRICTED)


def filename_from_key(key: str) -> str:
    return key.rsplit("/", 1)[-1] or "unknown"
