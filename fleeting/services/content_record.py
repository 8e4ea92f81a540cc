"""The content record and the helpers shared by every lifecycle component."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

# Fixed-width so SQL string comparison orders timestamps chronologically
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


class ContentKind(str, Enum):
    TEXT = "text"
    FILE = "file"


def utcnow() -> datetime:
    """Default clock: timezone-aware UTC wall time."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime for storage. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class FileInfo:
    name: str
    size: int
    mime_type: str
    handle: str


@dataclass(frozen=True)
class ContentRecord:
    short_id: str
    kind: ContentKind
    created_at: datetime
    expires_at: datetime
    text: str | None = None
    file: FileInfo | None = None
    password_hash: str | None = None
    one_time_view: bool = False
    max_views: int | None = None
    view_count: int = 0
    deleted: bool = False
    deleted_at: datetime | None = None
    blob_released: bool = False
    version: int = 0

    def __post_init__(self):
        if self.kind == ContentKind.TEXT and (self.text is None or self.file is not None):
            raise ValueError("text records carry inline text and no file")
        if self.kind == ContentKind.FILE and (self.file is None or self.text is not None):
            raise ValueError("file records carry file metadata and no text")

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def view_limit_reached(self) -> bool:
        return self.max_views is not None and self.view_count >= self.max_views

    def is_viewable(self, now: datetime) -> bool:
        return not self.deleted and not self.is_expired(now) and not self.view_limit_reached()

    def with_view(self, now: datetime) -> "ContentRecord":
        """Return the record after one more successful view.

        The view that uses up the budget also deletes the record.
        """
        view_count = self.view_count + 1
        exhausted = self.one_time_view or (
            self.max_views is not None and view_count >= self.max_views
        )
        return replace(
            self,
            view_count=view_count,
            deleted=self.deleted or exhausted,
            deleted_at=now if exhausted and not self.deleted else self.deleted_at,
        )
