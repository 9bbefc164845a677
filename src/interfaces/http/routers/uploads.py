from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Request, status

from src.application.events.dispatcher import dispatch_events
from src.application.use_cases.uploads import (
    abort_session,
    complete_grant,
    complete_session,
    get_session_status,
    init_session,
    issue_grant,
    report_part,
    resume_session,
)
from src.config.settings import Settings
from src.domain.models.upload_session import MAX_PARTS
from src.domain.value_objects.upload_owner import UploadOwner
from src.infrastructure.auth.context import AuthContext
from src.infrastructure.storage.ports import StorageService
from src.interfaces.http.deps import (
    get_app_settings,
    get_auth_context,
    get_storage_service,
    get_uow,
)
from src.interfaces.http.schemas.assets import AssetResponse
from src.interfaces.http.schemas.uploads import (
    CompleteGrantRequest,
    GrantRequest,
    GrantResponse,
    InitSessionRequest,
    InitSessionResponse,
    PartUrlResponse,
    ReportPartRequest,
    ResumeSessionResponse,
    SessionProgressResponse,
    SessionStatusResponse,
    UploadedPartResponse,
)

router = APIRouter(prefix="/uploads", tags=["uploads"])


def _schedule_events(request: Request, background_tasks: BackgroundTasks, uow) -> None:
    # Dispatch post-commit in background
    events = uow.drain_events()
    session_factory = getattr(request.app.state, "session_factory", None)
    if events and session_factory is not None:
        background_tasks.add_task(dispatch_events, session_factory, events)


@router.post("/grants", response_model=GrantResponse, status_code=status.HTTP_201_CREATED)
async def create_grant(
    payload: GrantRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_app_settings),
) -> GrantResponse:
    issued = await issue_grant.execute(
        uow,
        storage,
        role=context.role,
        owner=UploadOwner(
            user_id=context.user_id, project_id=payload.project_id, client_id=payload.client_id
        ),
        payload=issue_grant.IssueGrantInput(
            category=payload.category,
            filename=payload.filename,
            mime_type=payload.mime_type,
            size_bytes=payload.size_bytes,
        ),
        ttl_seconds=settings.upload_grant_ttl_seconds,
    )
    _schedule_events(request, background_tasks, uow)
    return GrantResponse(
        upload_url=issued.upload_url,
        storage_key=issued.grant.storage_key,
        token=issued.grant.token,
        expires_at=issued.grant.expires_at,
        max_size_bytes=issued.grant.max_size_bytes,
        headers=issued.headers,
    )


@router.post("/grants/complete", response_model=AssetResponse)
async def complete_grant_upload(
    payload: CompleteGrantRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
) -> AssetResponse:
    asset = await complete_grant.execute(
        uow,
        storage,
        token=payload.token,
        requester_id=context.user_id,
        checksum=payload.checksum,
    )
    _schedule_events(request, background_tasks, uow)
    return AssetResponse.from_asset(asset)


@router.post("/sessions", response_model=InitSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: InitSessionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_app_settings),
) -> InitSessionResponse:
    started = await init_session.execute(
        uow,
        storage,
        role=context.role,
        owner=UploadOwner(
            user_id=context.user_id, project_id=payload.project_id, client_id=payload.client_id
        ),
        payload=init_session.InitSessionInput(
            category=payload.category,
            filename=payload.filename,
            mime_type=payload.mime_type,
            total_size_bytes=payload.total_size_bytes,
            chunk_size_bytes=payload.chunk_size_bytes,
        ),
        session_ttl_hours=settings.upload_session_ttl_hours,
        part_url_ttl_seconds=settings.upload_part_url_ttl_seconds,
        default_chunk_size=settings.upload_default_chunk_size,
    )
    _schedule_events(request, background_tasks, uow)
    upload_session = started.session
    return InitSessionResponse(
        session_id=upload_session.id,
        storage_key=upload_session.storage_key,
        chunk_size_bytes=upload_session.chunk_size_bytes,
        total_chunks=upload_session.total_chunks,
        expires_at=upload_session.expires_at,
        part_urls=[
            PartUrlResponse(part_number=p.part_number, url=p.url) for p in started.part_urls
        ],
    )


@router.get("/sessions/{session_id}", response_model=SessionStatusResponse)
async def get_session(
    session_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
) -> SessionStatusResponse:
    upload_session = await get_session_status.execute(
        uow, storage, session_id=session_id, requester_id=context.user_id
    )
    return SessionStatusResponse.from_session(upload_session)


@router.get("/sessions/{session_id}/resume", response_model=ResumeSessionResponse)
async def resume_upload_session(
    session_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_app_settings),
) -> ResumeSessionResponse:
    resumed = await resume_session.execute(
        uow,
        storage,
        session_id=session_id,
        requester_id=context.user_id,
        part_url_ttl_seconds=settings.upload_part_url_ttl_seconds,
    )
    upload_session = resumed.session
    return ResumeSessionResponse(
        session_id=upload_session.id,
        storage_key=upload_session.storage_key,
        chunk_size_bytes=upload_session.chunk_size_bytes,
        total_chunks=upload_session.total_chunks,
        chunks_uploaded=upload_session.chunks_uploaded,
        bytes_uploaded=upload_session.bytes_uploaded,
        expires_at=upload_session.expires_at,
        uploaded_parts=[
            UploadedPartResponse(part_number=p.part_number, checksum_tag=p.checksum_tag)
            for p in upload_session.sorted_parts()
        ],
        remaining_part_urls=[
            PartUrlResponse(part_number=p.part_number, url=p.url)
            for p in resumed.remaining_part_urls
        ],
    )


@router.put("/sessions/{session_id}/parts/{part_number}", response_model=SessionProgressResponse)
async def report_session_part(
    session_id: UUID,
    payload: ReportPartRequest,
    part_number: int = Path(ge=1, le=MAX_PARTS),
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
) -> SessionProgressResponse:
    upload_session = await report_part.execute(
        uow,
        storage,
        session_id=session_id,
        requester_id=context.user_id,
        part_number=part_number,
        checksum_tag=payload.checksum_tag,
    )
    return SessionProgressResponse.from_session(upload_session)


@router.post("/sessions/{session_id}/complete", response_model=AssetResponse)
async def complete_upload_session(
    session_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
) -> AssetResponse:
    asset = await complete_session.execute(
        uow, storage, session_id=session_id, requester_id=context.user_id
    )
    _schedule_events(request, background_tasks, uow)
    return AssetResponse.from_asset(asset)


@router.delete("/sessions/{session_id}", response_model=SessionStatusResponse)
async def abort_upload_session(
    session_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    context: AuthContext = Depends(get_auth_context),
    uow=Depends(get_uow),
    storage: StorageService = Depends(get_storage_service),
) -> SessionStatusResponse:
    upload_session = await abort_session.execute(
        uow, storage, session_id=session_id, requester_id=context.user_id
    )
    _schedule_events(request, background_tasks, uow)
    return SessionStatusResponse.from_session(upload_session)
