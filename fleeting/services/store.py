"""Content store: the only component that touches persistence.

Every mutation is a single conditional UPDATE, so correctness holds when
several connections or processes share the database file. The connection
runs in autocommit mode (see fleeting.database.connect): each statement
commits on its own and nothing here ever rolls back the shared connection.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

import aiosqlite

from fleeting.errors import StoreUnavailable
from fleeting.services.content_record import (
    ContentKind,
    ContentRecord,
    FileInfo,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class ShortIdCollision(Exception):
    """Raised by insert when the short id is already taken."""


class ContentStore(Protocol):
    async def insert(self, record: ContentRecord) -> None: ...

    async def get_by_id(self, short_id: str) -> ContentRecord | None: ...

    async def compare_and_swap(
        self, short_id: str, expected_version: int, new_record: ContentRecord
    ) -> bool: ...

    async def mark_deleted(self, short_id: str, now: datetime) -> bool: ...

    async def claim_blob_release(self, short_id: str) -> bool: ...

    async def find_expired_undeleted(self, now: datetime) -> list[ContentRecord]: ...

    async def find_unreleased_blobs(self, now: datetime) -> list[ContentRecord]: ...


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except aiosqlite.IntegrityError:
        raise
    # aiosqlite raises ValueError once the connection is closed
    except (aiosqlite.Error, ValueError) as e:
        logger.error("Store %s failed: %s", operation, e)
        raise StoreUnavailable(f"Content store unavailable during {operation}") from e


def _row_to_record(row: aiosqlite.Row) -> ContentRecord:
    file = None
    if row["kind"] == ContentKind.FILE.value:
        file = FileInfo(
            name=row["file_name"],
            size=row["file_size"],
            mime_type=row["mime_type"],
            handle=row["file_handle"],
        )
    return ContentRecord(
        short_id=row["short_id"],
        kind=ContentKind(row["kind"]),
        created_at=parse_timestamp(row["created_at"]),
        expires_at=parse_timestamp(row["expires_at"]),
        text=row["text_content"],
        file=file,
        password_hash=row["password_hash"],
        one_time_view=bool(row["one_time_view"]),
        max_views=row["max_views"],
        view_count=row["view_count"],
        deleted=bool(row["is_deleted"]),
        deleted_at=parse_timestamp(row["deleted_at"]),
        blob_released=bool(row["blob_released"]),
        version=row["version"],
    )


class SqliteContentStore:
    """ContentStore backed by an aiosqlite connection."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def insert(self, record: ContentRecord) -> None:
        file = record.file
        try:
            with _store_errors("insert"):
                await self.db.execute(
                    """INSERT INTO contents (
                           short_id, kind, text_content,
                           file_name, file_size, mime_type, file_handle,
                           password_hash, one_time_view, max_views, view_count,
                           created_at, expires_at, is_deleted, deleted_at,
                           blob_released, version)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        record.short_id,
                        record.kind.value,
                        record.text,
                        file.name if file else None,
                        file.size if file else None,
                        file.mime_type if file else None,
                        file.handle if file else None,
                        record.password_hash,
                        int(record.one_time_view),
                        record.max_views,
                        record.view_count,
                        format_timestamp(record.created_at),
                        format_timestamp(record.expires_at),
                        int(record.deleted),
                        format_timestamp(record.deleted_at) if record.deleted_at else None,
                        int(record.blob_released),
                        record.version,
                    ),
                )
        except aiosqlite.IntegrityError as e:
            raise ShortIdCollision(record.short_id) from e

    async def get_by_id(self, short_id: str) -> ContentRecord | None:
        with _store_errors("get_by_id"):
            # Closing the cursor ends the read so a later write starts from a fresh snapshot
            async with self.db.execute(
                "SELECT * FROM contents WHERE short_id = ?", (short_id,)
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    async def compare_and_swap(
        self, short_id: str, expected_version: int, new_record: ContentRecord
    ) -> bool:
        """Write the mutable fields of ``new_record`` if nobody else got there first.

        Returns False on a version conflict.
        """
        with _store_errors("compare_and_swap"):
            cursor = await self.db.execute(
                """UPDATE contents
                   SET view_count = ?, is_deleted = ?, deleted_at = ?,
                       blob_released = ?, version = version + 1
                   WHERE short_id = ? AND version = ?""",
                (
                    new_record.view_count,
                    int(new_record.deleted),
                    format_timestamp(new_record.deleted_at) if new_record.deleted_at else None,
                    int(new_record.blob_released),
                    short_id,
                    expected_version,
                ),
            )
        return cursor.rowcount == 1

    async def mark_deleted(self, short_id: str, now: datetime) -> bool:
        """Flip is_deleted on. Returns True only for the caller that flipped it."""
        with _store_errors("mark_deleted"):
            cursor = await self.db.execute(
                """UPDATE contents
                   SET is_deleted = 1, deleted_at = ?, version = version + 1
                   WHERE short_id = ? AND is_deleted = 0""",
                (format_timestamp(now), short_id),
            )
        return cursor.rowcount == 1

    async def claim_blob_release(self, short_id: str) -> bool:
        """Reserve the right to delete a record's blob. Succeeds at most once."""
        with _store_errors("claim_blob_release"):
            cursor = await self.db.execute(
                """UPDATE contents
                   SET blob_released = 1, version = version + 1
                   WHERE short_id = ? AND kind = 'file' AND blob_released = 0""",
                (short_id,),
            )
        return cursor.rowcount == 1

    async def find_expired_undeleted(self, now: datetime) -> list[ContentRecord]:
        with _store_errors("find_expired_undeleted"):
            cursor = await self.db.execute(
                """SELECT * FROM contents
                   WHERE is_deleted = 0 AND expires_at < ?
                   ORDER BY expires_at ASC""",
                (format_timestamp(now),),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def find_unreleased_blobs(self, now: datetime) -> list[ContentRecord]:
        """Deleted file records past their expiry whose blob is still held."""
        with _store_errors("find_unreleased_blobs"):
            cursor = await self.db.execute(
                """SELECT * FROM contents
                   WHERE kind = 'file' AND is_deleted = 1
                     AND blob_released = 0 AND expires_at < ?""",
                (format_timestamp(now),),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def ping(self) -> bool:
        try:
            async with self.db.execute("SELECT 1") as cursor:
                await cursor.fetchone()
            return True
        except (aiosqlite.Error, ValueError) as e:
            logger.error("Health check failed: %s", e)
            return False
