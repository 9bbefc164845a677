from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    TEAM = "team"
    CLIENT = "client"

    def is_staff(self) -> bool:
        return self in {Role.ADMIN, Role.TEAM}

    def can_read_any_asset(self) -> bool:
        return self.is_staff()
