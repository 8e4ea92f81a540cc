"""Initial database schema.

Creates the contents table and the indexes the sweeper relies on.
"""

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    """Create the initial database schema."""

    # ── Contents table ───────────────────────────────────────────────────
    await db.execute("""
        CREATE TABLE contents (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            short_id        TEXT NOT NULL UNIQUE,
            kind            TEXT NOT NULL CHECK (kind IN ('text', 'file')),
            text_content    TEXT,
            file_name       TEXT,
            file_size       INTEGER,
            mime_type       TEXT,
            file_handle     TEXT,
            password_hash   TEXT,
            one_time_view   INTEGER NOT NULL DEFAULT 0,
            max_views       INTEGER,
            view_count      INTEGER NOT NULL DEFAULT 0,
            created_at      TEXT NOT NULL,
            expires_at      TEXT NOT NULL,
            is_deleted      INTEGER NOT NULL DEFAULT 0,
            deleted_at      TEXT,
            blob_released   INTEGER NOT NULL DEFAULT 0,
            version         INTEGER NOT NULL DEFAULT 0
        )
    """)
    await db.execute(
        "CREATE INDEX idx_contents_expiry ON contents(is_deleted, expires_at)"
    )
