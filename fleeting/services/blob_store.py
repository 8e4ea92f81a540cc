"""Blob storage for uploaded files.

The lifecycle engine only ever sees the opaque handle returned by ``put``.
Records are the source of truth for visibility; blobs are released
best-effort once their record is gone.
"""

import logging
import re
from pathlib import Path
from typing import Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

# Characters invalid in Windows/Linux filenames
INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
TRAILING_DOTS_SPACES = re.compile(r'[\s.]+$')
HANDLE_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def sanitize_filename(name: str) -> str:
    """Sanitize an uploaded file's display name.

    Removes invalid characters and path separators and ensures the result
    is non-empty and at most 255 characters.
    """
    sanitized = INVALID_CHARS.sub("", name)
    sanitized = TRAILING_DOTS_SPACES.sub("", sanitized)
    sanitized = sanitized.strip()

    if not sanitized:
        sanitized = "unnamed"

    if len(sanitized) > 255:
        stem, dot, ext = sanitized.rpartition(".")
        if dot and len(ext) <= 16:
            sanitized = f"{stem[:254 - len(ext)]}.{ext}"
        else:
            sanitized = sanitized[:255]

    return sanitized


class BlobStore(Protocol):
    def put(self, data: bytes, metadata: dict) -> str: ...

    def delete(self, handle: str) -> bool: ...


class LocalBlobStore:
    """Stores blobs as files named by a random UUID under a root directory."""

    def __init__(self, root: Path):
        self.root = root

    def path_for(self, handle: str) -> Path:
        if not HANDLE_PATTERN.match(handle):
            raise ValueError(f"Invalid blob handle: {handle!r}")
        return self.root / handle

    def put(self, data: bytes, metadata: dict) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        handle = uuid4().hex
        self.path_for(handle).write_bytes(data)
        logger.info(
            "Stored blob %s (%d bytes, %s)",
            handle, len(data), metadata.get("mime_type", "unknown type"),
        )
        return handle

    def delete(self, handle: str) -> bool:
        """Remove a blob. Returns False if it was already gone."""
        path = self.path_for(handle)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted blob %s", handle)
        return True
