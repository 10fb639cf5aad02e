"""
Domain models (Pydantic v2) for the calendar analysis pipeline.

Input events and the output report are frozen models; the report serializes
with camelCase aliases because presentation layers read it field-by-field.
Request-scoped aggregates (EventGroup) are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Sentinel reported instead of a division by zero hours
INFINITE_RATIO = "∞"


def round1(value: float) -> float:
    """Round half-up to one decimal place (hour-valued report fields)."""
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def round_int(value: float) -> int:
    """Round half-up to an integer (percentage report fields)."""
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_hours(minutes: float) -> float:
    return round1(minutes / 60)


class MetaCategory(str, Enum):
    """Behavioral meta-type of an activity."""

    INVESTMENT = "INVESTMENT"  # deep work, study, exercise, skill building
    RECOVERY = "RECOVERY"  # sleep, rest, meditation, relaxing social time
    MAINTENANCE = "MAINTENANCE"  # chores, commute, admin, eating
    PASSIVE = "PASSIVE"  # scrolling, unplanned TV, time sinks

    @classmethod
    def coerce(cls, label: Any) -> MetaCategory:
        """
        Map a free-text label to a meta-category.

        Unknown, empty or non-string labels fall back to MAINTENANCE.
        """
        if isinstance(label, cls):
            return label
        if isinstance(label, str):
            try:
                return cls(label.strip().upper())
            except ValueError:
                pass
        return cls.MAINTENANCE

    @property
    def label(self) -> str:
        """Title-cased name used in the meta distribution ("Investment")."""
        return self.value.title()

    @property
    def color(self) -> str:
        return META_COLORS[self]


META_COLORS: dict[MetaCategory, str] = {
    MetaCategory.INVESTMENT: "#818CF8",
    MetaCategory.RECOVERY: "#34D399",
    MetaCategory.MAINTENANCE: "#94A3B8",
    MetaCategory.PASSIVE: "#F472B6",
}


class RawEvent(BaseModel):
    """A timed calendar event. Immutable; sourced externally."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    start: datetime
    end: datetime

    @field_validator("title", mode="before")
    @classmethod
    def _title_default(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("start", "end")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("event timestamps must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> RawEvent:
        if self.end < self.start:
            raise ValueError("event end precedes start")
        return self

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


@dataclass
class EventGroup:
    """
    Events sharing one canonical key.

    ``titles`` is an insertion-ordered set (dict keys) of the distinct raw
    titles seen. ``meta`` stays None until the resolver runs.
    """

    key: str
    titles: dict[str, None] = field(default_factory=dict)
    events: list[RawEvent] = field(default_factory=list)
    meta: MetaCategory | None = None

    def add(self, title: str, event: RawEvent) -> None:
        self.titles.setdefault(title, None)
        self.events.append(event)

    @property
    def title_list(self) -> list[str]:
        return list(self.titles)

    @property
    def minutes(self) -> float:
        return sum(event.duration_minutes for event in self.events)


class CacheEntry(BaseModel):
    """One persisted classification mapping (category_cache row)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    canonical_key: str
    meta_category: MetaCategory
    display_name: str
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("meta_category", mode="before")
    @classmethod
    def _coerce_meta(cls, value: Any) -> MetaCategory:
        return MetaCategory.coerce(value)

    @classmethod
    def from_db_row(cls, row: Any) -> CacheEntry:
        return cls(
            user_id=row["user_id"],
            canonical_key=row["canonical_key"],
            meta_category=row["meta_category"],
            display_name=row["display_name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# --- Report models -------------------------------------------------------


class ReportModel(BaseModel):
    """Base for report records: immutable, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class CategoryEvent(ReportModel):
    title: str
    date: datetime
    duration: float  # minutes


class DisplayCategory(ReportModel):
    """User-facing merged category, one per distinct display name."""

    name: str
    meta: MetaCategory
    minutes: float
    count: int
    color: str
    value: float  # hours
    avg_duration: float  # hours
    events: tuple[CategoryEvent, ...] = ()


class Summary(ReportModel):
    total_hours: float = 0.0
    active_categories: int = 0
    longest_session: float = 0.0
    total_events: int = 0
    avg_session_length: float = 0.0


class WeeklyTrendEntry(ReportModel):
    day: str
    hours: float = 0.0
    events: int = 0


class TimeOfDayEntry(ReportModel):
    name: str
    value: float
    percentage: int


class WeekdayVsWeekend(ReportModel):
    weekday: float = 0.0
    weekend: float = 0.0


class HourlyEntry(ReportModel):
    hour: int = Field(ge=0, le=23)
    value: float


class Insight(ReportModel):
    type: str
    title: str
    message: str


class MetaDistributionEntry(ReportModel):
    name: str
    value: float
    color: str


class LyubishchevMetrics(ReportModel):
    recovery_rate: int = Field(default=0, ge=0, le=100)
    investment_ratio: float | str = INFINITE_RATIO
    maintenance_ratio: int = 0
    deep_work_blocks: int = 0


class Lyubishchev(ReportModel):
    meta_distribution: tuple[MetaDistributionEntry, ...]
    metrics: LyubishchevMetrics


class Fragmentation(ReportModel):
    score: int = 0
    level: str = "Low"
    short_sessions: int = 0
    total_sessions: int = 0
    description: str = ""


class Chronotype(ReportModel):
    peak_window: str
    hourly_investment: tuple[float, ...]
    hourly_low_value: tuple[float, ...]


class Burnout(ReportModel):
    risk: str = "Low"
    high_stress_days: int = 0
    description: str = ""


class DeepInsights(ReportModel):
    fragmentation: Fragmentation
    chronotype: Chronotype
    burnout: Burnout


class AnalysisReport(ReportModel):
    """The engine's sole output. Entirely derived, never mutated."""

    summary: Summary
    distribution: tuple[DisplayCategory, ...]
    weekly_trend: tuple[WeeklyTrendEntry, ...]
    time_of_day_data: tuple[TimeOfDayEntry, ...]
    weekday_vs_weekend: WeekdayVsWeekend
    hourly_distribution: tuple[HourlyEntry, ...]
    insights: tuple[Insight, ...]
    lyubishchev: Lyubishchev
    deep_insights: DeepInsights

    @property
    def total_minutes(self) -> float:
        return sum(category.minutes for category in self.distribution)
