"""
Event grouping and duration aggregation.

Grouping runs twice: events are first grouped by canonical key (the unit of
classification), then re-keyed by best display name so that different keys
whose display names coincide merge into one DisplayCategory.

TemporalAccumulator collects per-event sums across time-of-day, weekday,
hour-of-day, calendar date and meta-category axes in a single pass.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo

from calvibes.analysis.canonical import UNTITLED_DISPLAY, Canonicalizer
from calvibes.analysis.models import (
    CategoryEvent,
    DisplayCategory,
    EventGroup,
    HourlyEntry,
    MetaCategory,
    RawEvent,
    TimeOfDayEntry,
    WeekdayVsWeekend,
    WeeklyTrendEntry,
    round1,
    round_int,
    to_hours,
)
from calvibes.observability.logging import get_logger

logger = get_logger(__name__)

COLOR_PALETTE = (
    "#818CF8",
    "#F87171",
    "#34D399",
    "#FBBF24",
    "#A78BFA",
    "#FB923C",
    "#EC4899",
    "#06B6D4",
    "#84CC16",
    "#F472B6",
)

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKEND = frozenset({"Sat", "Sun"})

LOW_VALUE_META = frozenset({MetaCategory.MAINTENANCE, MetaCategory.PASSIVE})


def time_of_day_bucket(hour: int) -> str:
    """morning 05-12, afternoon 12-17, evening 17-22, night otherwise."""
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def resolve_timezone(name: str | None) -> tzinfo | None:
    """ZoneInfo for an IANA name; None (each event's own offset) when blank."""
    if not name:
        return None
    return ZoneInfo(name)


def group_events(
    events: Iterable[RawEvent], canonicalizer: Canonicalizer
) -> dict[str, EventGroup]:
    """Group events by canonical key, preserving first-seen order."""
    groups: dict[str, EventGroup] = {}
    for event in events:
        title = event.title.strip() or UNTITLED_DISPLAY
        key = canonicalizer.canonical_key(title)
        group = groups.get(key)
        if group is None:
            group = groups[key] = EventGroup(key=key)
        group.add(title, event)
    return groups


@dataclass
class DisplayCategoryBuilder:
    """Mutable accumulator for one display name across merged groups."""

    name: str
    meta: MetaCategory
    minutes: float = 0.0
    events: list[RawEvent] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.events)

    def absorb(self, group: EventGroup) -> None:
        self.keys.append(group.key)
        for event in group.events:
            self.minutes += event.duration_minutes
            self.events.append(event)

    def build(self, color: str) -> DisplayCategory:
        ordered = sorted(self.events, key=lambda event: event.duration_minutes, reverse=True)
        avg_minutes = self.minutes / self.count if self.count else 0.0
        return DisplayCategory(
            name=self.name,
            meta=self.meta,
            minutes=self.minutes,
            count=self.count,
            color=color,
            value=to_hours(self.minutes),
            avg_duration=to_hours(avg_minutes),
            events=tuple(
                CategoryEvent(title=event.title, date=event.start, duration=event.duration_minutes)
                for event in ordered
            ),
        )


def merge_groups(
    groups: dict[str, EventGroup], canonicalizer: Canonicalizer
) -> dict[str, DisplayCategoryBuilder]:
    """
    Re-key groups by best display name.

    Groups whose display names collide are merged; the first group's
    meta-category wins. Unresolved groups count as MAINTENANCE.
    """
    merged: dict[str, DisplayCategoryBuilder] = {}
    for group in groups.values():
        name = canonicalizer.best_display_name(group.title_list)
        builder = merged.get(name)
        if builder is None:
            builder = merged[name] = DisplayCategoryBuilder(
                name=name, meta=group.meta or MetaCategory.MAINTENANCE
            )
        elif group.meta is not None and group.meta != builder.meta:
            logger.debug(
                "Display name collision with differing meta: keeping %s over %s",
                builder.meta.value,
                group.meta.value,
            )
        builder.absorb(group)
    return merged


def build_distribution(merged: dict[str, DisplayCategoryBuilder]) -> list[DisplayCategory]:
    """Colors cycle in first-seen order; result is ordered by descending value."""
    categories = [
        builder.build(COLOR_PALETTE[index % len(COLOR_PALETTE)])
        for index, builder in enumerate(merged.values())
    ]
    # sorted() is stable, so ties keep first-seen order
    return sorted(categories, key=lambda category: category.value, reverse=True)


@dataclass
class Session:
    minutes: float
    meta: MetaCategory
    category: str


class TemporalAccumulator:
    """
    Single-pass accumulation of per-event duration sums.

    Every event is bucketed by its start instant: in ``tz`` when given,
    otherwise in the event's own wall-clock time.
    """

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz
        self.total_minutes = 0.0
        self.time_of_day: dict[str, float] = {
            "morning": 0.0,
            "afternoon": 0.0,
            "evening": 0.0,
            "night": 0.0,
        }
        self.weekday_minutes = 0.0
        self.weekend_minutes = 0.0
        self.hourly_minutes = [0.0] * 24
        self.hourly_investment = [0.0] * 24
        self.hourly_low_value = [0.0] * 24
        self.weekday_hours: dict[str, float] = {}
        self.weekday_events: dict[str, int] = {}
        self.daily_meta: dict[date, dict[MetaCategory, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self.meta_minutes: dict[MetaCategory, float] = {meta: 0.0 for meta in MetaCategory}
        self.meta_sessions: dict[MetaCategory, int] = {meta: 0 for meta in MetaCategory}
        self.sessions: list[Session] = []

    def _local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.tz) if self.tz is not None else instant

    def add(self, event: RawEvent, meta: MetaCategory, category: str = "") -> None:
        minutes = event.duration_minutes
        start = self._local(event.start)
        hour = start.hour
        day_name = WEEKDAYS[start.weekday()]

        self.total_minutes += minutes
        self.time_of_day[time_of_day_bucket(hour)] += minutes

        if day_name in WEEKEND:
            self.weekend_minutes += minutes
        else:
            self.weekday_minutes += minutes

        self.hourly_minutes[hour] += minutes
        if meta == MetaCategory.INVESTMENT:
            self.hourly_investment[hour] += minutes
        elif meta in LOW_VALUE_META:
            self.hourly_low_value[hour] += minutes

        self.weekday_hours[day_name] = self.weekday_hours.get(day_name, 0.0) + minutes / 60
        self.weekday_events[day_name] = self.weekday_events.get(day_name, 0) + 1

        self.daily_meta[start.date()][meta] += minutes

        self.meta_minutes[meta] += minutes
        self.meta_sessions[meta] += 1
        self.sessions.append(Session(minutes=minutes, meta=meta, category=category))

    def add_category(self, builder: DisplayCategoryBuilder) -> None:
        for event in builder.events:
            self.add(event, builder.meta, builder.name)

    # --- derived views ---

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def active_days(self) -> int:
        """Distinct calendar dates with at least one event (minimum 1)."""
        return len(self.daily_meta) or 1

    @property
    def longest_session_minutes(self) -> float:
        return max((session.minutes for session in self.sessions), default=0.0)

    def weekly_trend(self) -> list[WeeklyTrendEntry]:
        return [
            WeeklyTrendEntry(
                day=day,
                hours=round1(self.weekday_hours.get(day, 0.0)),
                events=self.weekday_events.get(day, 0),
            )
            for day in WEEKDAYS
        ]

    def time_of_day_data(self) -> list[TimeOfDayEntry]:
        entries = []
        for bucket in ("morning", "afternoon", "evening", "night"):
            minutes = self.time_of_day[bucket]
            percentage = round_int(minutes / self.total_minutes * 100) if self.total_minutes else 0
            entries.append(
                TimeOfDayEntry(name=bucket.title(), value=to_hours(minutes), percentage=percentage)
            )
        return entries

    def hourly_distribution(self) -> list[HourlyEntry]:
        return [
            HourlyEntry(hour=hour, value=to_hours(minutes))
            for hour, minutes in enumerate(self.hourly_minutes)
        ]

    def weekday_vs_weekend(self) -> WeekdayVsWeekend:
        return WeekdayVsWeekend(
            weekday=to_hours(self.weekday_minutes),
            weekend=to_hours(self.weekend_minutes),
        )
