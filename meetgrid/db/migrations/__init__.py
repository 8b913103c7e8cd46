"""Versioned SQL migrations.

Files named ``NNN_description.sql`` in this directory are applied in
version order and recorded in ``schema_migrations``.
"""

import logging
from pathlib import Path
from typing import Any

from meetgrid.db.core import _get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        description TEXT
    );
"""


def parse_migration_filename(path: Path) -> tuple[int, str] | None:
    """``003_add_index.sql`` -> ``(3, "add_index")``; None for other files."""
    parts = path.stem.split("_")
    try:
        version = int(parts[0])
    except ValueError:
        return None
    return version, "_".join(parts[1:])


async def get_current_version() -> int:
    async with _get_connection() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        row = await cur.fetchone()
        return int(row[0]) if row and row[0] else 0


def list_migrations() -> list[dict[str, Any]]:
    migrations = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        parsed = parse_migration_filename(path)
        if parsed is None:
            continue
        version, description = parsed
        migrations.append({"version": version, "description": description, "path": path})
    return sorted(migrations, key=lambda m: m["version"])


async def run_migrations() -> int:
    """Apply pending migrations, each in its own transaction.

    Returns:
        Number of migrations applied.
    """
    current = await get_current_version()
    applied = 0
    for migration in list_migrations():
        if migration["version"] <= current:
            continue
        sql = migration["path"].read_text()
        async with _get_connection() as conn:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                    (migration["version"], migration["description"]),
                )
        logger.info("Applied migration %d: %s", migration["version"], migration["description"])
        applied += 1
    return applied
