#!/usr/bin/env python3
"""
Script to assign an upload role to a user.

Users without a profile upload as `client`. Staff accounts (admin, team)
must be registered here before they can open raw or deliverable uploads.

Usage:
  python scripts/set_user_role.py --user-id UUID --role team
"""

import argparse
import asyncio
import sys
from pathlib import Path
from uuid import UUID

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config.settings import get_settings
from src.domain.models.user_profile import UserProfile
from src.domain.value_objects.role import Role
from src.infrastructure.db.session import (
    SQLAlchemyUnitOfWork,
    create_engine,
    create_session_factory,
)


async def set_role(user_id: UUID, role: Role) -> None:
    settings = get_settings()
    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)

    try:
        async with SQLAlchemyUnitOfWork(session_factory) as uow:
            previous = await uow.user_profiles.get(user_id)
            await uow.user_profiles.upsert(UserProfile(user_id=user_id, role=role))
            await uow.commit()
    finally:
        await engine.dispose()

    if previous:
        print(f"User {user_id}: {previous.role.value} -> {role.value}")
    else:
        print(f"User {user_id}: registered as {role.value}")


def main():
    parser = argparse.ArgumentParser(description="Assign an upload role to a user")
    parser.add_argument("--user-id", required=True, help="Subject (sub claim) of the user")
    parser.add_argument("--role", required=True, choices=[r.value for r in Role])
    args = parser.parse_args()

    try:
        user_id = UUID(args.user_id)
    except ValueError:
        print(f"Error: '{args.user_id}' is not a valid UUID")
        sys.exit(1)

    asyncio.run(set_role(user_id, Role(args.role)))


if __name__ == "__main__":
    main()
