"""Pydantic models for content."""

from datetime import datetime

from pydantic import BaseModel


class ContentCreateResponse(BaseModel):
    short_id: str
    share_url: str
    expires_at: datetime
    type: str
    has_password: bool = False
    one_time_view: bool = False
    max_views: int | None = None


class ContentResponse(BaseModel):
    short_id: str
    type: str
    created_at: datetime
    expires_at: datetime
    view_count: int
    remaining_views: int | None = None
    one_time_view: bool = False
    max_views: int | None = None
    text_content: str | None = None
    file_name: str | None = None
    file_url: str | None = None
    file_size: int | None = None
    mime_type: str | None = None


class ContentMetadataResponse(BaseModel):
    short_id: str
    type: str
    file_name: str | None = None
    requires_password: bool
    expires_at: datetime
    is_expired: bool
    can_view: bool
    reason: str | None = None
    one_time_view: bool = False
    max_views: int | None = None


class DeleteResponse(BaseModel):
    message: str
    already_deleted: bool = False


class SweepResponse(BaseModel):
    message: str
    reclaimed: int
