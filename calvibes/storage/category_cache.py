"""
Category Cache Repository - persisted canonical_key -> meta-category mappings.

Follows the database patterns in calvibes/infrastructure/database.py.
The engine reads one snapshot per analysis (read_all) and writes at most one
batch (upsert_many); both are keyed by owner.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import NamedTuple, Protocol

from calvibes.analysis.models import CacheEntry, MetaCategory
from calvibes.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter

logger = get_logger(__name__)

_UPSERT_SQL = """
    INSERT INTO category_cache (
        user_id, canonical_key, meta_category, display_name, created_at, updated_at
    ) VALUES (
        :user_id, :canonical_key, :meta_category, :display_name, :now, :now
    )
    ON CONFLICT(user_id, canonical_key) DO UPDATE SET
        meta_category = excluded.meta_category,
        display_name = excluded.display_name,
        updated_at = excluded.updated_at
"""


class CacheWrite(NamedTuple):
    """One mapping to persist."""

    canonical_key: str
    meta: MetaCategory
    display_name: str


class CategoryCache(Protocol):
    """What the engine needs from the classification cache."""

    def read_all(self, user_id: str) -> dict[str, MetaCategory]: ...

    def upsert_many(self, user_id: str, entries: Iterable[CacheWrite]) -> int: ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _params(user_id: str, entry: CacheWrite, now: str) -> dict[str, str]:
    return {
        "user_id": user_id,
        "canonical_key": entry.canonical_key,
        "meta_category": MetaCategory.coerce(entry.meta).value,
        "display_name": entry.display_name,
        "now": now,
    }


class CategoryCacheRepository:
    """
    SQLite-backed classification cache.

    Upserts are idempotent: re-applying an entry only refreshes updated_at.
    Concurrent writers are last-write-wins per (user_id, canonical_key).
    """

    @staticmethod
    def read_all(user_id: str) -> dict[str, MetaCategory]:
        """
        Full snapshot of one owner's mappings.

        Stored labels outside the four meta-categories coerce to MAINTENANCE.
        """
        with get_db_connection() as conn:
            rows = conn.execute(
                "SELECT canonical_key, meta_category FROM category_cache WHERE user_id = ?",
                (user_id,),
            ).fetchall()

        snapshot = {row["canonical_key"]: MetaCategory.coerce(row["meta_category"]) for row in rows}
        logger.debug("Loaded %d cached categories for user %s", len(snapshot), user_id)
        return snapshot

    @staticmethod
    @retry_on_db_lock()
    def upsert(user_id: str, canonical_key: str, meta: MetaCategory, display_name: str) -> None:
        """
        Insert or update a single mapping.

        Side Effects:
            - Writes one row in category_cache
            - Commits transaction
        """
        entry = CacheWrite(canonical_key, MetaCategory.coerce(meta), display_name)
        with db_transaction() as conn:
            conn.execute(_UPSERT_SQL, _params(user_id, entry, _utc_now()))

        counter("cache.write.single")
        logger.info("Cached %s -> %s for user %s", canonical_key, entry.meta.value, user_id)

    @staticmethod
    @retry_on_db_lock()
    def upsert_many(user_id: str, entries: Iterable[CacheWrite]) -> int:
        """
        Insert or update a batch of mappings in one transaction.

        All-or-nothing: a failure rolls the whole batch back. An empty batch
        is a no-op and opens no transaction.

        Returns:
            Number of entries written
        """
        now = _utc_now()
        params = [_params(user_id, entry, now) for entry in entries]
        if not params:
            return 0

        with db_transaction() as conn:
            conn.executemany(_UPSERT_SQL, params)

        counter("cache.write.batch")
        counter("cache.write.entries", len(params))
        logger.info("Cached %d categories for user %s", len(params), user_id)
        return len(params)

    @staticmethod
    def list_entries(user_id: str) -> list[CacheEntry]:
        """All mappings for an owner, alphabetical by display name."""
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT user_id, canonical_key, meta_category, display_name,
                       created_at, updated_at
                FROM category_cache
                WHERE user_id = ?
                ORDER BY display_name COLLATE NOCASE, canonical_key
                """,
                (user_id,),
            ).fetchall()
        return [CacheEntry.from_db_row(row) for row in rows]

    @classmethod
    def import_legacy(cls, user_id: str, mapping: Mapping[str, str]) -> int:
        """
        Import a flat {canonical_key: meta_label} mapping from an older export.

        The key doubles as display name; labels are coerced like classifier output.
        """
        entries = [
            CacheWrite(key, MetaCategory.coerce(label), key)
            for key, label in mapping.items()
            if key
        ]
        imported = cls.upsert_many(user_id, entries)
        logger.info("Imported %d legacy cache entries for user %s", imported, user_id)
        return imported
