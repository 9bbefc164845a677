from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import cast
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///default.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

# ruff: noqa: E402
from src.config.settings import Settings
from src.domain.value_objects.role import Role
from src.infrastructure.db.base import Base
from src.infrastructure.db.orm import (  # noqa: F401
    activity_log,
    processing_job,
    stored_asset,
    upload_grant,
    upload_session,
    user_profile,
)
from src.infrastructure.db.orm.user_profile import UserProfileORM
from src.interfaces.http.main import create_app
from tests.fakes import InMemoryStorage


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings.model_validate(
        {
            "database_url": f"sqlite+aiosqlite:///{db_path}",
            "jwt_secret_key": "test-secret",
            "log_level": "INFO",
            "environment": "test",
            "s3_bucket": "test-bucket",
        }
    )


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def app(test_settings: Settings, storage: InMemoryStorage):
    return create_app(settings=test_settings, storage_service=storage)


@pytest.fixture()
async def client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        engine = app.state.engine
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield client
    await app.state.engine.dispose()


@pytest.fixture()
async def seeded_profiles(app, client) -> dict[str, UUID]:
    admin_id = uuid4()
    team_id = uuid4()
    client_id = uuid4()
    async with app.state.session_factory() as session:  # type: ignore[attr-defined]
        async_session = cast(AsyncSession, session)
        async_session.add_all(
            [
                UserProfileORM(user_id=admin_id, role=Role.ADMIN),
                UserProfileORM(user_id=team_id, role=Role.TEAM),
                UserProfileORM(user_id=client_id, role=Role.CLIENT),
            ]
        )
        await async_session.commit()
    return {"admin": admin_id, "team": team_id, "client": client_id}


@pytest.fixture()
def auth_headers(app) -> Callable[[UUID], dict[str, str]]:
    def _headers(user_id: UUID) -> dict[str, str]:
        token = app.state.jwt_service.create_access_token(subject=user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
