"""
category_cache table definition.

One row per (owner, canonical key). The meta_category column is restricted
to the four meta-categories, display_name is required, and the unique
constraint is what the repository's ON CONFLICT upsert targets.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from calvibes.observability.logging import get_logger

logger = get_logger(__name__)

META_CATEGORY_VALUES = ("INVESTMENT", "RECOVERY", "MAINTENANCE", "PASSIVE")

REQUIRED_COLUMNS = {
    "category_cache": (
        "id",
        "user_id",
        "canonical_key",
        "meta_category",
        "display_name",
        "created_at",
        "updated_at",
    ),
}


def _schema_sql() -> str:
    allowed = ", ".join(f"'{value}'" for value in META_CATEGORY_VALUES)
    return f"""
        CREATE TABLE IF NOT EXISTS category_cache (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default',
            canonical_key TEXT NOT NULL,
            meta_category TEXT NOT NULL CHECK(meta_category IN ({allowed})),
            display_name TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, canonical_key)
        );

        CREATE INDEX IF NOT EXISTS idx_category_cache_user
        ON category_cache(user_id);
    """


def init_database(db_path: Path) -> None:
    """
    Create the database file and category_cache table if missing.

    Idempotent; creates parent directories as needed.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(_schema_sql())
        conn.commit()
    finally:
        conn.close()

    logger.info("Category cache schema ready at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Raises:
        ValueError: If a required table or column is missing
    """
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}

    for table, columns in REQUIRED_COLUMNS.items():
        if table not in tables:
            raise ValueError(f"Database missing tables: {{'{table}'}}")

        present = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        missing = [column for column in columns if column not in present]
        if missing:
            raise ValueError(f"Table '{table}' missing columns: {missing}")

    return True
