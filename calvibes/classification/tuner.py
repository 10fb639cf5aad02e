"""
Category tuner - manual inspection and correction of cached mappings.

Unlike classifier output, a label supplied by the user is validated strictly:
an unknown meta-category is a ValueError, not a silent MAINTENANCE.
"""

from __future__ import annotations

from calvibes.analysis.canonical import Canonicalizer
from calvibes.analysis.models import CacheEntry, MetaCategory
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter
from calvibes.storage.category_cache import CategoryCacheRepository

logger = get_logger(__name__)


def parse_meta_category(label: str) -> MetaCategory:
    """
    Strict label parsing for user input.

    Raises:
        ValueError: If label is not one of the four meta-categories
    """
    normalized = (label or "").strip().upper()
    try:
        return MetaCategory(normalized)
    except ValueError:
        allowed = ", ".join(meta.value for meta in MetaCategory)
        raise ValueError(f"Invalid meta category '{label}'. Expected one of: {allowed}") from None


class CategoryTuner:
    def __init__(
        self,
        repository: CategoryCacheRepository | None = None,
        canonicalizer: Canonicalizer | None = None,
    ):
        self.repository = repository or CategoryCacheRepository()
        self.canonicalizer = canonicalizer or Canonicalizer()

    def list_categories(self, user_id: str) -> list[CacheEntry]:
        return self.repository.list_entries(user_id)

    def override(self, user_id: str, title: str, meta: str | MetaCategory) -> CacheEntry:
        """
        Pin a title's meta-category.

        The title is canonicalized, so the override applies to every variant
        ("Boxing 3", "BOXING-7") on the next analysis.

        Raises:
            ValueError: If title is blank or meta is not a valid meta-category
        """
        if not title or not title.strip():
            raise ValueError("title must not be empty")

        meta_category = meta if isinstance(meta, MetaCategory) else parse_meta_category(meta)
        display_name = title.strip()
        key = self.canonicalizer.canonical_key(display_name)

        self.repository.upsert(user_id, key, meta_category, display_name)
        counter("tuner.override")
        logger.info("Override %s -> %s for user %s", key, meta_category.value, user_id)

        return CacheEntry(
            user_id=user_id,
            canonical_key=key,
            meta_category=meta_category,
            display_name=display_name,
        )
