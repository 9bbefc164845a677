from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.application.errors import PermissionDenied
from src.domain.value_objects.role import Role
from src.infrastructure.repos.user_profiles_sqlalchemy import UserProfilesSQLAlchemyRepository


@dataclass(slots=True)
class AuthContext:
    user_id: UUID
    role: Role
    claims: dict[str, Any] = field(default_factory=dict)

    def require_roles(self, allowed: Iterable[Role]) -> None:
        if self.role not in set(allowed):
            raise PermissionDenied("Role not allowed for this action")


async def fetch_role(session: AsyncSession, user_id: UUID) -> Role:
    return await UserProfilesSQLAlchemyRepository(session).get_role(user_id)
