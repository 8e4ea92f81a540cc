"""Database migration runner.

Uses a simple version tracking table to run migrations in order.
Each migration is a Python module with an `upgrade(db)` async function,
applied inside its own transaction.
"""

import importlib
import logging

import aiosqlite

logger = logging.getLogger(__name__)

# List of migration modules in order
MIGRATIONS = [
    "fleeting.migrations.m001_initial",
]


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Run any pending migrations."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    cursor = await db.execute("SELECT name FROM _migrations")
    applied = {row[0] for row in await cursor.fetchall()}

    for migration_name in MIGRATIONS:
        if migration_name in applied:
            continue

        module = importlib.import_module(migration_name)
        try:
            # IMMEDIATE takes the write lock up front so a second connection waits here
            await db.execute("BEGIN IMMEDIATE")
            await module.upgrade(db)
            await db.execute(
                "INSERT INTO _migrations (name) VALUES (?)",
                (migration_name,),
            )
            await db.commit()
        except aiosqlite.OperationalError:
            # Another connection applied it first
            await db.rollback()
            cursor = await db.execute(
                "SELECT 1 FROM _migrations WHERE name = ?", (migration_name,)
            )
            if await cursor.fetchone() is None:
                raise
            continue
        logger.info("Applied migration %s", migration_name)
