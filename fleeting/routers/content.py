"""Content routes: upload, read, inspect and delete self-destructing content."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from fleeting.config import settings
from fleeting.models.content import (
    ContentCreateResponse,
    ContentMetadataResponse,
    ContentResponse,
    DeleteResponse,
    SweepResponse,
)
from fleeting.services.blob_store import sanitize_filename
from fleeting.services.content_record import ContentKind
from fleeting.services.content_service import ContentService, UploadedFile
from fleeting.services.passwords import MAX_PASSWORD_BYTES

router = APIRouter(tags=["content"])


def get_content_service(request: Request) -> ContentService:
    """The service instance wired up in the application lifespan."""
    return request.app.state.content_service


def _parse_expiry(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid expiry date format.")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _file_url(handle: str) -> str:
    return f"{settings.base_url.rstrip('/')}/uploads/{handle}"


@router.post("/api/content/upload", response_model=ContentCreateResponse, status_code=201)
async def upload_content(
    type: str = Form(...),
    text_content: str | None = Form(None),
    file: UploadFile | None = File(None),
    password: str | None = Form(None),
    one_time_view: bool = Form(False),
    max_views: int | None = Form(None),
    expires_at: str | None = Form(None),
    service: ContentService = Depends(get_content_service),
):
    """Upload text or a file behind a fresh short id."""
    if type not in ("text", "file"):
        raise HTTPException(
            status_code=400,
            detail='Invalid or missing content type. Must be "text" or "file".',
        )
    kind = ContentKind(type)

    upload = None
    if kind == ContentKind.TEXT:
        if not text_content or not text_content.strip():
            raise HTTPException(status_code=400, detail="Text content is required for text uploads.")
        if len(text_content) > settings.max_text_length:
            raise HTTPException(status_code=413, detail="Text content is too large.")
    else:
        if file is None:
            raise HTTPException(status_code=400, detail="File is required for file uploads.")
        if file.size and file.size > settings.max_upload_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds max size of {settings.max_upload_size_mb}MB",
            )
        data = await file.read()
        if len(data) > settings.max_upload_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds max size of {settings.max_upload_size_mb}MB",
            )
        upload = UploadedFile(
            name=sanitize_filename(file.filename or "unnamed"),
            mime_type=file.content_type or "application/octet-stream",
            data=data,
        )

    if password:
        if len(password) < settings.min_password_length:
            raise HTTPException(
                status_code=400,
                detail=f"Password must be at least {settings.min_password_length} characters long.",
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise HTTPException(status_code=400, detail="Password is too long.")

    if max_views is not None and max_views < 1:
        raise HTTPException(status_code=400, detail="max_views must be >= 1")

    record = await service.create_content(
        kind=kind,
        text=text_content,
        upload=upload,
        password=password,
        one_time_view=one_time_view,
        max_views=max_views,
        expires_at=_parse_expiry(expires_at),
    )

    return ContentCreateResponse(
        short_id=record.short_id,
        share_url=f"{settings.base_url.rstrip('/')}/view/{record.short_id}",
        expires_at=record.expires_at,
        type=record.kind.value,
        has_password=record.has_password,
        one_time_view=record.one_time_view,
        max_views=record.max_views,
    )


@router.get("/api/content/{short_id}/metadata", response_model=ContentMetadataResponse)
async def get_content_metadata(
    short_id: str,
    service: ContentService = Depends(get_content_service),
):
    """Lightweight check: never counts a view, never returns the payload."""
    return await service.read_metadata(short_id)


@router.get("/api/content/{short_id}", response_model=ContentResponse)
async def get_content(
    short_id: str,
    password: str | None = None,
    service: ContentService = Depends(get_content_service),
):
    """Read content. Each successful read counts one view."""
    view = await service.read_content(short_id, password)
    record = view.record

    response = ContentResponse(
        short_id=record.short_id,
        type=record.kind.value,
        created_at=record.created_at,
        expires_at=record.expires_at,
        view_count=view.view_count,
        remaining_views=view.remaining_views,
        one_time_view=record.one_time_view,
        max_views=record.max_views,
    )
    if record.kind == ContentKind.TEXT:
        response.text_content = record.text
    else:
        response.file_name = record.file.name
        response.file_url = _file_url(record.file.handle)
        response.file_size = record.file.size
        response.mime_type = record.file.mime_type
    return response


@router.delete("/api/content/{short_id}", response_model=DeleteResponse)
async def delete_content(
    short_id: str,
    service: ContentService = Depends(get_content_service),
):
    """Delete content manually. Repeating the call is harmless."""
    transitioned = await service.delete_content(short_id)
    return DeleteResponse(
        message="Content deleted successfully",
        already_deleted=not transitioned,
    )


@router.post("/api/cleanup", response_model=SweepResponse)
async def trigger_cleanup(service: ContentService = Depends(get_content_service)):
    """Run a sweep now instead of waiting for the scheduled one."""
    reclaimed = await service.trigger_sweep()
    return SweepResponse(message="Cleanup completed successfully", reclaimed=reclaimed)
