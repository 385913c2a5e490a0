"""
Admin API - video catalog management.
Runs on port 9001 (not exposed externally).

Run with: uvicorn api.admin:app --host 0.0.0.0 --port 9001
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from databases import Database
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from api import catalog
from api.audit import AuditAction, log_audit
from api.common import (
    SecurityHeadersMiddleware,
    check_health,
    get_real_ip,
    rate_limit_exceeded_handler,
)
from api.database import create_database, create_tables
from api.enums import SubmitOutcome
from api.errors import BackendError, NotFoundError
from api.list_loader import ListLoader
from api.relation_sync import RelationSyncer
from api.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkOperationResult,
    SectionCreate,
    SectionResponse,
    VideoListResponse,
    VideoResponse,
    VideoWrite,
    VideoWriteResponse,
)
from api.video_form import SubmitResult, VideoFormController
from config import (
    ADMIN_CORS_ALLOWED_ORIGINS,
    ADMIN_PORT,
    CREATE_TABLES_ON_STARTUP,
    RATE_LIMIT_ADMIN_DEFAULT,
    RATE_LIMIT_ADMIN_WRITE,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_STORAGE_URL,
    ConfigurationError,
    require_backend_config,
)

logger = logging.getLogger(__name__)

# Initialize rate limiter for admin API
limiter = Limiter(
    key_func=get_real_ip,
    storage_uri=RATE_LIMIT_STORAGE_URL if RATE_LIMIT_ENABLED else None,
    enabled=RATE_LIMIT_ENABLED,
)

router = APIRouter()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the backend client owned by the app."""
    return request.app.state.database


def _client_info(request: Request) -> dict:
    return {"client_ip": get_real_ip(request), "user_agent": request.headers.get("user-agent")}


def _write_response(result: SubmitResult) -> VideoWriteResponse:
    return VideoWriteResponse(
        status=result.outcome.value,
        video_id=result.video_id,
        message=result.message,
        warnings=result.warnings,
    )


def _section_response(row: dict) -> SectionResponse:
    return SectionResponse(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        skill=row["skill"] or "",
        created_at=row["created_at"],
    )


async def _check_sections_exist(database: Database, section_ids: List[int]) -> None:
    if not section_ids:
        return
    try:
        known = {row["id"] for row in await catalog.fetch_sections(database)}
    except Exception as e:
        raise BackendError.from_exception(e) from e
    missing = set(section_ids) - known
    if missing:
        raise HTTPException(status_code=400, detail=f"Section IDs not found: {sorted(missing)}")


@router.get("/health")
async def health_check(database: Database = Depends(get_database)):
    """
    Health check endpoint for monitoring and load balancers.

    Returns 503 if the backend is unreachable.
    """
    result = await check_health(database)
    return JSONResponse(
        status_code=result["status_code"],
        content={
            "status": "healthy" if result["healthy"] else "unhealthy",
            "checks": result["checks"],
        },
    )


# ============ Sections ============


@router.get("/api/sections")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def list_sections(request: Request, database: Database = Depends(get_database)) -> List[SectionResponse]:
    """List all sections."""
    loader = ListLoader(database)
    if not await loader.refresh_sections():
        raise HTTPException(status_code=503, detail=f"Failed to load sections: {loader.last_error}")

    return [_section_response(row) for row in loader.sections]


@router.post("/api/sections")
@limiter.limit(RATE_LIMIT_ADMIN_WRITE)
async def create_section(
    request: Request, data: SectionCreate, database: Database = Depends(get_database)
) -> SectionResponse:
    """Create a new section."""
    try:
        section_id = await catalog.insert_section(database, data.model_dump())
        row = await catalog.fetch_section(database, section_id)
    except Exception as e:
        raise BackendError.from_exception(e) from e

    log_audit(
        AuditAction.SECTION_CREATE,
        **_client_info(request),
        resource_type="section",
        resource_id=section_id,
        resource_name=data.name,
    )

    return _section_response(row)


# ============ Videos ============


@router.get("/api/videos")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def list_videos(
    request: Request,
    include_tags: bool = Query(default=True, description="Attach each row's tags"),
    database: Database = Depends(get_database),
) -> List[VideoListResponse]:
    """List every video, newest id first."""
    loader = ListLoader(database)
    if not await loader.refresh_videos():
        raise HTTPException(status_code=503, detail=f"Failed to load videos: {loader.last_error}")

    tag_map = None
    if include_tags:
        tag_map = await loader.tags_for_all()
        if loader.last_error:
            raise HTTPException(status_code=503, detail=f"Failed to load tags: {loader.last_error}")

    return [
        VideoListResponse(
            **row,
            tags=tag_map.get(row["id"], []) if tag_map is not None else None,
        )
        for row in loader.videos
    ]


@router.get("/api/videos/{video_id}")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def get_video(request: Request, video_id: int, database: Database = Depends(get_database)) -> VideoResponse:
    """Get a video with its tags and section ids."""
    syncer = RelationSyncer(database)
    try:
        row = await catalog.fetch_video(database, video_id)
        if not row:
            raise HTTPException(status_code=404, detail="Video not found")
        tag_values = await syncer.fetch_tags(video_id)
        section_ids = await syncer.fetch_sections(video_id)
    except HTTPException:
        raise
    except Exception as e:
        raise BackendError.from_exception(e) from e

    return VideoResponse(**row, tags=tag_values, section_ids=section_ids)


@router.get("/api/videos/{video_id}/tags")
@limiter.limit(RATE_LIMIT_ADMIN_DEFAULT)
async def get_video_tags(request: Request, video_id: int, database: Database = Depends(get_database)) -> List[str]:
    """Tags for one table row."""
    try:
        video = await catalog.fetch_video(database, video_id)
    except Exception as e:
        raise BackendError.from_exception(e) from e
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    loader = ListLoader(database)
    tag_values = await loader.tags_for(video_id)
    if loader.last_error:
        raise HTTPException(status_code=503, detail=f"Failed to load tags: {loader.last_error}")
    return tag_values


@router.post("/api/videos")
@limiter.limit(RATE_LIMIT_ADMIN_WRITE)
async def create_video(
    request: Request, data: VideoWrite, database: Database = Depends(get_database)
) -> VideoWriteResponse:
    """
    Add a video, then sync its tags and section links.

    A failed video insert returns 502 and writes nothing else. A failed tag or
    section sync returns status "partial": the video row stays.
    """
    await _check_sections_exist(database, data.section_ids)

    form = VideoFormController(database)
    form.open_add()
    form.update_draft(**data.scalar_fields())
    form.set_tags(data.tags)
    form.set_sections(data.section_ids)

    result = await form.submit()
    if result.outcome == SubmitOutcome.FAILED:
        log_audit(
            AuditAction.VIDEO_CREATE,
            **_client_info(request),
            resource_type="video",
            resource_name=data.title,
            success=False,
            error=result.message,
        )
        raise HTTPException(status_code=502, detail=result.message)

    log_audit(
        AuditAction.VIDEO_CREATE,
        **_client_info(request),
        resource_type="video",
        resource_id=result.video_id,
        resource_name=data.title,
        details={"tags": data.tags, "section_ids": data.section_ids, "warnings": result.warnings},
    )
    return _write_response(result)


@router.put("/api/videos/{video_id}")
@limiter.limit(RATE_LIMIT_ADMIN_WRITE)
async def update_video(
    request: Request, video_id: int, data: VideoWrite, database: Database = Depends(get_database)
) -> VideoWriteResponse:
    """Update a video's fields, then replace its tags and section links."""
    form = VideoFormController(database)
    try:
        await form.open_edit(video_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Video not found")
    except Exception as e:
        raise BackendError.from_exception(e) from e

    await _check_sections_exist(database, data.section_ids)

    form.update_draft(**data.scalar_fields())
    form.set_tags(data.tags)
    form.set_sections(data.section_ids)

    result = await form.submit()
    if result.outcome == SubmitOutcome.FAILED:
        log_audit(
            AuditAction.VIDEO_UPDATE,
            **_client_info(request),
            resource_type="video",
            resource_id=video_id,
            success=False,
            error=result.message,
        )
        raise HTTPException(status_code=502, detail=result.message)

    log_audit(
        AuditAction.VIDEO_UPDATE,
        **_client_info(request),
        resource_type="video",
        resource_id=video_id,
        resource_name=data.title,
        details={"tags": data.tags, "section_ids": data.section_ids, "warnings": result.warnings},
    )
    return _write_response(result)


@router.post("/api/videos/bulk/delete")
@limiter.limit(RATE_LIMIT_ADMIN_WRITE)
async def bulk_delete_videos(
    request: Request, data: BulkDeleteRequest, database: Database = Depends(get_database)
) -> BulkDeleteResponse:
    """
    Delete the selected videos by id.

    Tag and section-link rows of deleted videos are left in place.
    """
    requested = list(dict.fromkeys(data.video_ids))
    try:
        existing = set(await catalog.fetch_existing_video_ids(database, requested))
        to_delete = [video_id for video_id in requested if video_id in existing]
        if to_delete:
            await catalog.delete_videos(database, to_delete)
    except Exception as e:
        logger.exception(f"Bulk delete of {requested} failed: {e}")
        raise BackendError.from_exception(e) from e

    results = [
        BulkOperationResult(video_id=video_id, success=True)
        if video_id in existing
        else BulkOperationResult(video_id=video_id, success=False, error="Video not found")
        for video_id in requested
    ]
    deleted_count = len(to_delete)
    failed_count = len(requested) - deleted_count

    log_audit(
        AuditAction.VIDEO_BULK_DELETE,
        **_client_info(request),
        resource_type="video",
        details={"video_ids": requested, "deleted": deleted_count, "failed": failed_count},
    )

    return BulkDeleteResponse(
        status="ok" if failed_count == 0 else "partial",
        deleted=deleted_count,
        failed=failed_count,
        results=results,
    )


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the admin application.

    This is the composition root: when no database is given, the backend
    client is constructed from configuration at startup (missing endpoint or
    key is fatal). Either way the app connects and disconnects it and hands it
    to request handlers through ``get_database``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application startup and shutdown."""
        backend = database
        if backend is None:
            try:
                endpoint, key = require_backend_config()
            except ConfigurationError as e:
                logger.critical(f"Cannot start admin API: {e}")
                raise
            backend = create_database(endpoint, key)

        if RATE_LIMIT_ENABLED and RATE_LIMIT_STORAGE_URL == "memory://":
            logger.warning(
                "Rate limiting is using in-memory storage. "
                "For deployments with multiple instances, configure Redis: "
                "VIDCAT_RATE_LIMIT_STORAGE_URL=redis://localhost:6379"
            )
        if CREATE_TABLES_ON_STARTUP:
            create_tables(str(backend.url))
        await backend.connect()
        app.state.database = backend

        yield

        await backend.disconnect()

    app = FastAPI(title="Video Catalog Admin", description="Video and section management API", lifespan=lifespan)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        """Forward the backend's message with a 502."""
        logger.warning(f"Backend error on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=502, content={"detail": exc.message})

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ADMIN_CORS_ALLOWED_ORIGINS,
        allow_credentials=True if ADMIN_CORS_ALLOWED_ORIGINS != ["*"] else False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=ADMIN_PORT)
