from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.application.interfaces.unit_of_work import UnitOfWork


def create_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


class SQLAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory
        self.session: AsyncSession | None = None
        self.events: list = []
        self._reset_repos()

    def _reset_repos(self) -> None:
        self.upload_grants = None
        self.upload_sessions = None
        self.stored_assets = None
        self.user_profiles = None
        self.processing_jobs = None
        self.activity_log = None

    def _bind_repos(self, session: AsyncSession) -> None:
        from src.infrastructure.repos.activity_log_sqlalchemy import (
            ActivityLogSQLAlchemyRepository,
        )
        from src.infrastructure.repos.processing_jobs_sqlalchemy import (
            ProcessingJobsSQLAlchemyRepository,
        )
        from src.infrastructure.repos.stored_assets_sqlalchemy import (
            StoredAssetsSQLAlchemyRepository,
        )
        from src.infrastructure.repos.upload_grants_sqlalchemy import (
            UploadGrantsSQLAlchemyRepository,
        )
        from src.infrastructure.repos.upload_sessions_sqlalchemy import (
            UploadSessionsSQLAlchemyRepository,
        )
        from src.infrastructure.repos.user_profiles_sqlalchemy import (
            UserProfilesSQLAlchemyRepository,
        )

        self.upload_grants = UploadGrantsSQLAlchemyRepository(session)
        self.upload_sessions = UploadSessionsSQLAlchemyRepository(session)
        self.stored_assets = StoredAssetsSQLAlchemyRepository(session)
        self.user_profiles = UserProfilesSQLAlchemyRepository(session)
        self.processing_jobs = ProcessingJobsSQLAlchemyRepository(session)
        self.activity_log = ActivityLogSQLAlchemyRepository(session)

    async def __aenter__(self) -> UnitOfWork:
        self.session = self._session_factory()
        self._bind_repos(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.session:
            return
        try:
            if exc:
                await self.session.rollback()
        finally:
            await self.session.close()
            self.session = None
            self._reset_repos()

    async def commit(self) -> None:
        if not self.session:
            return
        await self.session.commit()

    async def rollback(self) -> None:
        if not self.session:
            return
        await self.session.rollback()

    def add_event(self, event: object) -> None:
        self.events.append(event)

    def drain_events(self) -> list:
        events, self.events = self.events, []
        return events
