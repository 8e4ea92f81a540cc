"""Content service: the operations the HTTP layer exposes.

Create, read, inspect and delete content, and trigger a sweep. Reads
consult the access guard first and then let the lifecycle engine record
the view atomically.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from fleeting.services.access_guard import decide, gone_reason
from fleeting.services.blob_store import BlobStore
from fleeting.services.content_record import ContentKind, ContentRecord, FileInfo
from fleeting.services.lifecycle import LifecycleEngine, NewContent
from fleeting.services.sweeper import Sweeper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    name: str
    mime_type: str
    data: bytes


@dataclass(frozen=True)
class ContentView:
    """A successful read: the record as it was before this view was counted."""

    record: ContentRecord

    @property
    def view_count(self) -> int:
        return self.record.view_count + 1

    @property
    def remaining_views(self) -> int | None:
        if self.record.one_time_view:
            return 0
        if self.record.max_views is None:
            return None
        return max(self.record.max_views - self.view_count, 0)


class ContentService:
    def __init__(self, engine: LifecycleEngine, blobs: BlobStore, sweeper: Sweeper):
        self.engine = engine
        self.blobs = blobs
        self.sweeper = sweeper

    async def create_content(
        self,
        kind: ContentKind,
        text: str | None = None,
        upload: UploadedFile | None = None,
        password: str | None = None,
        one_time_view: bool = False,
        max_views: int | None = None,
        expires_at: datetime | None = None,
    ) -> ContentRecord:
        file = None
        if kind == ContentKind.FILE:
            handle = self.blobs.put(
                upload.data, {"name": upload.name, "mime_type": upload.mime_type}
            )
            file = FileInfo(
                name=upload.name,
                size=len(upload.data),
                mime_type=upload.mime_type,
                handle=handle,
            )

        request = NewContent(
            kind=kind,
            text=text if kind == ContentKind.TEXT else None,
            file=file,
            password=password or None,
            one_time_view=one_time_view,
            max_views=max_views,
            expires_at=expires_at,
        )
        try:
            return await self.engine.create(request)
        except Exception:
            if file is not None:
                # The record was never written, so nothing else will reclaim the blob
                try:
                    self.blobs.delete(file.handle)
                except Exception:
                    logger.warning("Failed to remove orphaned blob %s", file.handle, exc_info=True)
            raise

    async def read_content(self, short_id: str, password: str | None = None) -> ContentView:
        record = await self.engine.fetch_for_read(short_id)
        # The password check runs bcrypt, so decide in a worker thread
        decision = await asyncio.to_thread(decide, record, password, self.engine.clock())
        if not decision.allowed:
            logger.info("Denied read of %s: %s", short_id, decision.reason.value)
            raise decision.to_error(short_id)
        snapshot = await self.engine.record_view(short_id)
        return ContentView(record=snapshot)

    async def read_metadata(self, short_id: str) -> dict:
        """Describe a record without counting a view or revealing its payload."""
        record = await self.engine.fetch_for_read(short_id)
        now = self.engine.clock()
        reason = gone_reason(record, now)
        return {
            "short_id": record.short_id,
            "type": record.kind.value,
            "file_name": record.file.name if record.file else None,
            "requires_password": record.has_password,
            "expires_at": record.expires_at,
            "is_expired": record.is_expired(now),
            "can_view": record.is_viewable(now),
            "reason": reason.value if reason else None,
            "one_time_view": record.one_time_view,
            "max_views": record.max_views,
        }

    async def delete_content(self, short_id: str) -> bool:
        """Delete content on request. Deleting twice is not an error."""
        record = await self.engine.fetch_for_read(short_id)
        transitioned = await self.engine.soft_delete(short_id, reason="requested")
        await self.engine.release_blob(record)
        return transitioned

    async def trigger_sweep(self) -> int:
        return await self.sweeper.sweep()

