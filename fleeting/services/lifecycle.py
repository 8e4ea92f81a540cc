"""Lifecycle engine: every state transition a content record goes through.

Records move one way, Active -> Deleted. The engine never relies on
in-process locking; each transition is a single conditional write in the
store, so it stays correct when the store is shared between processes.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from fleeting.errors import ContentGone, ContentNotFound, InvalidExpiry
from fleeting.services.access_guard import gone_reason
from fleeting.services.blob_store import BlobStore
from fleeting.services.content_record import ContentKind, ContentRecord, FileInfo, utcnow
from fleeting.services.passwords import hash_password
from fleeting.services.short_id import generate_short_id
from fleeting.services.store import ContentStore, ShortIdCollision

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY = timedelta(minutes=10)
MAX_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class NewContent:
    """What a producer asks for when creating content."""

    kind: ContentKind
    text: str | None = None
    file: FileInfo | None = None
    password: str | None = None
    one_time_view: bool = False
    max_views: int | None = None
    expires_at: datetime | None = None


class LifecycleEngine:
    def __init__(
        self,
        store: ContentStore,
        blobs: BlobStore,
        clock: Callable[[], datetime] = utcnow,
        id_generator: Callable[[], str] = generate_short_id,
        default_expiry: timedelta = DEFAULT_EXPIRY,
    ):
        self.store = store
        self.blobs = blobs
        self.clock = clock
        self.id_generator = id_generator
        self.default_expiry = default_expiry

    async def create(self, request: NewContent) -> ContentRecord:
        """Persist a new Active record. Raises InvalidExpiry for a past expiry."""
        now = self.clock()
        if request.expires_at is not None and request.expires_at <= now:
            raise InvalidExpiry()
        if request.max_views is not None and request.max_views < 1:
            raise ValueError("max_views must be a positive integer")

        expires_at = request.expires_at or now + self.default_expiry
        password_hash = None
        if request.password:
            # bcrypt is CPU-bound, so hash in a worker thread
            password_hash = await asyncio.to_thread(hash_password, request.password)

        for _ in range(MAX_ID_ATTEMPTS):
            record = ContentRecord(
                short_id=self.id_generator(),
                kind=request.kind,
                created_at=now,
                expires_at=expires_at,
                text=request.text,
                file=request.file,
                password_hash=password_hash,
                one_time_view=request.one_time_view,
                max_views=request.max_views,
            )
            try:
                await self.store.insert(record)
            except ShortIdCollision:
                logger.warning("Short id collision on %s, retrying", record.short_id)
                continue
            logger.info(
                "Created %s content %s (expires %s)",
                record.kind.value, record.short_id, record.expires_at.isoformat(),
            )
            return record
        raise RuntimeError(f"Failed to generate a unique short id after {MAX_ID_ATTEMPTS} attempts")

    async def fetch_for_read(self, short_id: str) -> ContentRecord:
        record = await self.store.get_by_id(short_id)
        if record is None:
            raise ContentNotFound(short_id)
        return record

    async def record_view(self, short_id: str) -> ContentRecord:
        """Count one successful view and return the record as it was before it.

        Viewability is re-checked against fresh data on every attempt; a lost
        compare-and-swap means someone else changed the record, so re-read.
        The view that exhausts the budget deletes the record in the same write.
        """
        while True:
            record = await self.fetch_for_read(short_id)
            now = self.clock()
            reason = gone_reason(record, now)
            if reason is not None:
                raise ContentGone(short_id, reason)

            updated = record.with_view(now)
            if await self.store.compare_and_swap(short_id, record.version, updated):
                if updated.deleted:
                    logger.info(
                        "Content %s used up its views (%d) and was deleted",
                        short_id, updated.view_count,
                    )
                return record
            logger.debug("View of %s lost a race, retrying", short_id)

    async def soft_delete(self, short_id: str, reason: str) -> bool:
        """Mark a record deleted. Idempotent.

        Returns True if this call performed the transition, False if the
        record was already deleted.
        """
        transitioned = await self.store.mark_deleted(short_id, self.clock())
        if transitioned:
            logger.info("Deleted content %s (%s)", short_id, reason)
            return True
        if await self.store.get_by_id(short_id) is None:
            raise ContentNotFound(short_id)
        return False

    async def release_blob(self, record: ContentRecord) -> bool:
        """Delete a file record's blob, at most once across all callers.

        Best-effort: failures are logged and swallowed since the record,
        not the blob, decides visibility.
        """
        if record.kind != ContentKind.FILE or record.blob_released:
            return False
        if not await self.store.claim_blob_release(record.short_id):
            return False
        try:
            found = self.blobs.delete(record.file.handle)
        except Exception:
            logger.warning(
                "Failed to delete blob %s of %s", record.file.handle, record.short_id,
                exc_info=True,
            )
            return False
        if not found:
            logger.warning("Blob %s of %s was already missing", record.file.handle, record.short_id)
        return True
