"""
Cache-first meta-category resolution.

For one analysis request: canonical keys found in the cache snapshot take
their cached meta-category; all misses go to the classifier in a single
batch and are written back in a single upsert. Classifier or cache-write
trouble degrades to MAINTENANCE and never fails the analysis.
"""

from __future__ import annotations

from collections.abc import Mapping

from calvibes.analysis.canonical import Canonicalizer
from calvibes.analysis.models import EventGroup, MetaCategory
from calvibes.classification.meta_classifier import MetaClassifier
from calvibes.infrastructure.llm_budget import check_budget, record_llm_call
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter, log_event
from calvibes.storage.category_cache import CacheWrite, CategoryCache

logger = get_logger(__name__)


class CategoryResolver:
    """Assigns a MetaCategory to every EventGroup of a request."""

    def __init__(
        self,
        classifier: MetaClassifier,
        cache: CategoryCache,
        canonicalizer: Canonicalizer | None = None,
        enforce_budget: bool = True,
    ):
        self.classifier = classifier
        self.cache = cache
        self.canonicalizer = canonicalizer or Canonicalizer()
        self.enforce_budget = enforce_budget

    def resolve(
        self,
        groups: dict[str, EventGroup],
        cache_snapshot: Mapping[str, MetaCategory],
        user_id: str,
    ) -> dict[str, EventGroup]:
        """
        Populate ``group.meta`` for every group.

        Args:
            groups: Canonical key -> EventGroup for this request
            cache_snapshot: Request-scoped copy of the owner's cache (read once)
            user_id: Cache owner

        Returns:
            The same ``groups`` mapping, every meta populated

        Side Effects:
            - At most one classifier call (only when there are misses)
            - At most one cache upsert_many (only when there are misses)
        """
        misses: list[tuple[str, str]] = []
        for key, group in groups.items():
            cached = cache_snapshot.get(key)
            if cached is not None:
                group.meta = MetaCategory.coerce(cached)
                continue
            misses.append((key, self.canonicalizer.best_display_name(group.title_list)))

        hits = len(groups) - len(misses)
        counter("resolver.cache_hit", hits)
        counter("resolver.cache_miss", len(misses))

        if not misses:
            logger.debug("All %d categories resolved from cache", hits)
            return groups

        labels = self._classify([name for _, name in misses], user_id)

        writes: list[CacheWrite] = []
        defaulted = 0
        for key, name in misses:
            label = labels.get(name)
            meta = MetaCategory.coerce(label)
            if label is None or meta.value != str(label).strip().upper():
                defaulted += 1
            groups[key].meta = meta
            writes.append(CacheWrite(canonical_key=key, meta=meta, display_name=name))

        if defaulted:
            counter("resolver.defaulted", defaulted)
        log_event(
            "resolver.classified",
            hits=hits,
            misses=len(misses),
            defaulted=defaulted,
        )

        self._write_back(user_id, writes)
        return groups

    def _classify(self, names: list[str], user_id: str) -> dict[str, str]:
        if self.enforce_budget:
            budget = check_budget(user_id)
            if not budget.is_allowed:
                counter("resolver.budget_exceeded")
                logger.warning("Skipping classifier for user %s: %s", user_id, budget.reason)
                return {}
            record_llm_call(user_id, "classifier")

        try:
            return self.classifier.classify(names) or {}
        except Exception as e:
            counter("resolver.classifier_error")
            logger.error("Classifier raised, defaulting %d categories: %s", len(names), e)
            return {}

    def _write_back(self, user_id: str, writes: list[CacheWrite]) -> None:
        try:
            self.cache.upsert_many(user_id, writes)
        except Exception as e:
            counter("resolver.cache_write_error")
            logger.error("Failed to cache %d categories for user %s: %s", len(writes), user_id, e)
