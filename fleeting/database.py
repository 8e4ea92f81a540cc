"""SQLite connection management and initialization."""

from pathlib import Path

import aiosqlite

from fleeting.migrations.runner import run_migrations


async def connect(db_path: Path) -> aiosqlite.Connection:
    """Open a connection to the content database and run migrations.

    Each caller owns the connection it gets back. Several connections (or
    processes) may share one database file.

    The connection is in autocommit mode: every statement is its own
    transaction, so coroutines sharing the connection never commit or roll
    back each other's writes.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(str(db_path), isolation_level=None)
    db.row_factory = aiosqlite.Row

    # Enable WAL mode for better read concurrency
    await db.execute("PRAGMA journal_mode=WAL")
    # Reasonable busy timeout for concurrent writers
    await db.execute("PRAGMA busy_timeout=5000")

    await run_migrations(db)
    return db
