from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces.repositories.user_profiles import UserProfilesRepository
from src.domain.models.user_profile import UserProfile
from src.domain.value_objects.role import Role
from src.infrastructure.db.orm.user_profile import UserProfileORM


class UserProfilesSQLAlchemyRepository(UserProfilesRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: UUID) -> UserProfile | None:
        result = await self.session.execute(
            select(UserProfileORM).where(UserProfileORM.user_id == user_id)
        )
        orm = result.scalar_one_or_none()
        return UserProfile(user_id=orm.user_id, role=orm.role) if orm else None

    async def get_role(self, user_id: UUID) -> Role:
        """Principals without a profile row are clients."""
        profile = await self.get(user_id)
        return profile.role if profile else Role.CLIENT

    async def upsert(self, profile: UserProfile) -> UserProfile:
        await self.session.merge(UserProfileORM(user_id=profile.user_id, role=profile.role))
        await self.session.flush()
        return profile
