"""
Analysis engine - raw calendar events to AnalysisReport.

Pipeline (one synchronous pass per request):
    events -> group by canonical key -> cache snapshot (one read)
    -> resolve meta-categories (at most one classifier call, one cache write)
    -> merge by display name + temporal accumulation -> metrics -> insights

Only a failing event source aborts the request (AnalysisError). An unreadable
cache is treated as empty, and classifier or cache-write failures degrade to
MAINTENANCE inside the resolver.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import tzinfo
from typing import Any

from calvibes.analysis import metrics
from calvibes.analysis.aggregation import (
    TemporalAccumulator,
    build_distribution,
    group_events,
    merge_groups,
    resolve_timezone,
)
from calvibes.analysis.canonical import Canonicalizer
from calvibes.analysis.insights import PERSONAL_FOCUS_STOPLIST, build_insights
from calvibes.analysis.models import AnalysisReport, DeepInsights, RawEvent
from calvibes.classification.meta_classifier import GeminiMetaClassifier, MetaClassifier
from calvibes.classification.resolver import CategoryResolver
from calvibes.infrastructure.settings import ANALYSIS_TIMEZONE, DEFAULT_USER_ID
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter, log_event, time_block
from calvibes.storage.category_cache import CategoryCache, CategoryCacheRepository

logger = get_logger(__name__)


class AnalysisError(RuntimeError):
    """Raised when an analysis request cannot produce a report."""


class AnalysisEngine:
    """
    End-to-end calendar analysis.

    Collaborators are injectable so tests can run without SQLite or Gemini.
    """

    def __init__(
        self,
        repository: CategoryCache | None = None,
        classifier: MetaClassifier | None = None,
        canonicalizer: Canonicalizer | None = None,
        tz: tzinfo | None = None,
        stoplist: Sequence[str] = PERSONAL_FOCUS_STOPLIST,
        enforce_budget: bool = True,
    ):
        self.repository = repository if repository is not None else CategoryCacheRepository()
        self.classifier = classifier if classifier is not None else GeminiMetaClassifier()
        self.canonicalizer = canonicalizer or Canonicalizer()
        self.tz = tz if tz is not None else resolve_timezone(ANALYSIS_TIMEZONE)
        self.stoplist = tuple(stoplist)
        self.resolver = CategoryResolver(
            self.classifier,
            self.repository,
            self.canonicalizer,
            enforce_budget=enforce_budget,
        )

    def _collect_events(self, events: Iterable[RawEvent | dict[str, Any]]) -> list[RawEvent]:
        """Materialize the event source; raw dict items go through the calendar parser."""
        from calvibes.calendar.parser import parse_events

        try:
            items = list(events)
        except Exception as e:
            counter("analysis.source_error")
            raise AnalysisError(f"Event source unavailable: {e}") from e

        if all(isinstance(item, RawEvent) for item in items):
            return items
        return parse_events(items)

    def analyze(
        self,
        events: Iterable[RawEvent | dict[str, Any]],
        user_id: str = DEFAULT_USER_ID,
    ) -> AnalysisReport:
        """
        Build the report for one owner's events.

        Raises:
            AnalysisError: If the event source fails
        """
        with time_block("analysis.latency"):
            valid = self._collect_events(events)
            groups = group_events(valid, self.canonicalizer)

            try:
                snapshot = dict(self.repository.read_all(user_id))
            except Exception as e:
                counter("analysis.cache_read_error")
                logger.error(
                    "Failed to read category cache for user %s, classifying without it: %s",
                    user_id,
                    e,
                )
                snapshot = {}

            self.resolver.resolve(groups, snapshot, user_id)

            merged = merge_groups(groups, self.canonicalizer)
            distribution = build_distribution(merged)

            acc = TemporalAccumulator(self.tz)
            for builder in merged.values():
                acc.add_category(builder)

            report = AnalysisReport(
                summary=metrics.summary(acc, active_categories=len(merged)),
                distribution=tuple(distribution),
                weekly_trend=tuple(acc.weekly_trend()),
                time_of_day_data=tuple(acc.time_of_day_data()),
                weekday_vs_weekend=acc.weekday_vs_weekend(),
                hourly_distribution=tuple(acc.hourly_distribution()),
                insights=tuple(build_insights(distribution, acc, self.stoplist)),
                lyubishchev=metrics.lyubishchev(acc),
                deep_insights=DeepInsights(
                    fragmentation=metrics.fragmentation(acc),
                    chronotype=metrics.chronotype(acc),
                    burnout=metrics.burnout(acc),
                ),
            )

        counter("analysis.completed")
        log_event(
            "analysis.completed",
            events=len(valid),
            groups=len(groups),
            categories=len(merged),
        )
        return report


def analyze_events(
    events: Iterable[RawEvent | dict[str, Any]],
    user_id: str = DEFAULT_USER_ID,
    **engine_options: Any,
) -> AnalysisReport:
    """Analyze with a default engine (SQLite cache, Gemini classifier)."""
    return AnalysisEngine(**engine_options).analyze(events, user_id)
