from __future__ import annotations

from enum import Enum


class UploadCategory(str, Enum):
    RAW = "raw"
    DELIVERABLE = "deliverable"
    AVATAR = "avatar"
    PORTFOLIO = "portfolio"
    PUBLIC_ASSET = "public-asset"
    TEAM_WIP = "team-wip"
    # Generic bucket for keys outside the known prefixes
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | UploadCategory | None) -> UploadCategory | None:
        if isinstance(value, UploadCategory):
            return value
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Visibility(str, Enum):
    PUBLIC = "public"
    RESTRICTED = "restricted"
