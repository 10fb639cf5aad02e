"""
Qualitative insight records.

Generation is deterministic given the aggregates and makes no external calls.
Message wording is presentation detail; type tags and order are stable.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from calvibes.analysis.aggregation import TemporalAccumulator
from calvibes.analysis.metrics import deep_work_blocks
from calvibes.analysis.models import INFINITE_RATIO, DisplayCategory, Insight, round1, round_int

# Generic life-maintenance terms excluded from "Top Personal Focus"
PERSONAL_FOCUS_STOPLIST: tuple[str, ...] = (
    "sleep",
    "work",
    "job",
    "sleeping",
    "working",
    "睡眠",
    "工作",
    "上班",
)


def top_personal_category(
    distribution: Iterable[DisplayCategory],
    stoplist: Sequence[str] = PERSONAL_FOCUS_STOPLIST,
) -> DisplayCategory | None:
    """First category whose lowercased name contains no stoplist term."""
    for category in distribution:
        name = category.name.lower()
        if not any(term in name for term in stoplist):
            return category
    return None


def weekday_weekend_ratio(acc: TemporalAccumulator) -> float | str:
    weekend_hours = acc.weekend_minutes / 60
    if weekend_hours <= 0:
        return INFINITE_RATIO
    return round1((acc.weekday_minutes / 60) / weekend_hours)


def build_insights(
    distribution: Sequence[DisplayCategory],
    acc: TemporalAccumulator,
    stoplist: Sequence[str] = PERSONAL_FOCUS_STOPLIST,
) -> list[Insight]:
    insights: list[Insight] = []

    top = top_personal_category(distribution, stoplist)
    if top is not None:
        insights.append(
            Insight(
                type="dominant",
                title="Top Personal Focus",
                message=(
                    f'Outside of work and sleep, your biggest focus is "{top.name}" '
                    f"({top.value} hours)."
                ),
            )
        )

    insights.append(
        Insight(
            type="focus",
            title="Deep Focus Score",
            message=f"You had {deep_work_blocks(acc)} deep work sessions (>90min).",
        )
    )

    per_day = round_int(acc.session_count / acc.active_days)
    insights.append(
        Insight(
            type="fragmentation",
            title="Context Switching",
            message=f"You average {per_day} activities per day.",
        )
    )

    insights.append(
        Insight(
            type="balance",
            title="Work-Life Rhythm",
            message=f"You are {weekday_weekend_ratio(acc)}x more active on weekdays.",
        )
    )

    return insights
