"""Database migrations module.

This module provides a simple migration system for managing database schema changes.
Migrations are versioned SQL files (``NNN_description.sql``) that are applied in order.
"""

import logging
from pathlib import Path
from typing import Any

from psycopg_pool import AsyncConnectionPool

from datepoll.db.core import connection, transaction

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        description TEXT
    );
"""


async def get_current_version(pool: AsyncConnectionPool) -> int:
    """Get the current migration version from the database."""
    async with connection(pool) as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        row = await (
            await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        ).fetchone()
        return int(row[0]) if row and row[0] else 0


async def apply_migration(
    pool: AsyncConnectionPool, version: int, sql: str, description: str = ""
) -> bool:
    """Apply a single migration.

    The migration body and its bookkeeping row commit together.

    Returns:
        True if migration was applied, False if already applied.
    """
    current = await get_current_version(pool)
    if version <= current:
        logger.debug("Migration %d already applied", version)
        return False

    try:
        async with transaction(pool) as conn:
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                (version, description),
            )
    except Exception as e:
        logger.error("Failed to apply migration %d: %s", version, e)
        raise

    logger.info("Applied migration %d: %s", version, description)
    return True


def list_migrations(directory: Path = MIGRATIONS_DIR) -> list[dict[str, Any]]:
    """List migration files found on disk, ordered by version."""
    migrations = []
    for path in sorted(directory.glob("*.sql")):
        # Parse version from filename (e.g., "001_initial.sql" -> 1)
        try:
            version = int(path.stem.split("_")[0])
        except (ValueError, IndexError):
            continue
        migrations.append({
            "version": version,
            "filename": path.name,
            "description": "_".join(path.stem.split("_")[1:]),
            "path": path,
        })
    return sorted(migrations, key=lambda m: m["version"])


async def get_pending_migrations(pool: AsyncConnectionPool) -> list[dict[str, Any]]:
    """Get list of pending migrations."""
    current = await get_current_version(pool)
    return [m for m in list_migrations() if m["version"] > current]


async def run_migrations(pool: AsyncConnectionPool) -> int:
    """Run all pending migrations.

    Returns:
        Number of migrations applied.
    """
    pending = await get_pending_migrations(pool)
    applied = 0

    for migration in pending:
        sql = migration["path"].read_text()
        if await apply_migration(pool, migration["version"], sql, migration["description"]):
            applied += 1

    if applied:
        logger.info("Applied %d migrations", applied)
    else:
        logger.debug("No pending migrations")

    return applied


async def get_migration_history(pool: AsyncConnectionPool) -> list[dict[str, Any]]:
    """Get the history of applied migrations."""
    async with connection(pool) as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute(
            """
            SELECT version, applied_at, description
            FROM schema_migrations
            ORDER BY version
            """
        )
        return [
            {"version": row[0], "applied_at": row[1], "description": row[2]}
            async for row in cur
        ]
