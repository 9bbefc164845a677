from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.models.user_profile import UserProfile
from src.domain.value_objects.role import Role


class UserProfilesRepository(Protocol):
    async def get(self, user_id: UUID) -> UserProfile | None: ...

    async def get_role(self, user_id: UUID) -> Role: ...

    async def upsert(self, profile: UserProfile) -> UserProfile: ...
