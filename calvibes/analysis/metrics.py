"""
Derived metrics over a TemporalAccumulator.

All functions are pure; every division has an explicit zero branch.
"""

from __future__ import annotations

from calvibes.analysis.aggregation import TemporalAccumulator
from calvibes.analysis.models import (
    INFINITE_RATIO,
    Burnout,
    Chronotype,
    Fragmentation,
    Lyubishchev,
    LyubishchevMetrics,
    MetaCategory,
    MetaDistributionEntry,
    Summary,
    round1,
    round_int,
    to_hours,
)
from calvibes.config import (
    DEEP_WORK_MINUTES,
    HIGH_STRESS_INVESTMENT_MINUTES,
    HIGH_STRESS_RECOVERY_MINUTES,
    RECOVERY_HOURS_PER_DAY,
    SHORT_SESSION_MINUTES,
)

CHRONOTYPE_WINDOW_HOURS = 3


def fragmentation(acc: TemporalAccumulator) -> Fragmentation:
    """Share of sessions shorter than SHORT_SESSION_MINUTES."""
    total = acc.session_count
    short = sum(1 for session in acc.sessions if session.minutes < SHORT_SESSION_MINUTES)
    score = round_int(short / total * 100) if total else 0

    if score > 50:
        level = "High"
    elif score > 30:
        level = "Moderate"
    else:
        level = "Low"

    return Fragmentation(
        score=score,
        level=level,
        short_sessions=short,
        total_sessions=total,
        description=f"{score}% of your sessions are under {int(SHORT_SESSION_MINUTES)} mins.",
    )


def peak_window_start(hourly_investment: list[float]) -> int:
    """
    Start hour of the 3-hour window holding the most investment minutes.

    Ties keep the lowest start hour; no investment time at all yields 0.
    """
    best_start = 0
    best_sum = 0.0
    for start in range(24 - CHRONOTYPE_WINDOW_HOURS + 1):
        window = sum(hourly_investment[start : start + CHRONOTYPE_WINDOW_HOURS])
        if window > best_sum:
            best_sum = window
            best_start = start
    return best_start


def chronotype(acc: TemporalAccumulator) -> Chronotype:
    start = peak_window_start(acc.hourly_investment)
    return Chronotype(
        peak_window=f"{start}:00 - {start + CHRONOTYPE_WINDOW_HOURS}:00",
        hourly_investment=tuple(to_hours(minutes) for minutes in acc.hourly_investment),
        hourly_low_value=tuple(to_hours(minutes) for minutes in acc.hourly_low_value),
    )


def high_stress_days(acc: TemporalAccumulator) -> int:
    """Calendar dates with heavy investment load and too little recovery."""
    return sum(
        1
        for day in acc.daily_meta.values()
        if day.get(MetaCategory.INVESTMENT, 0.0) > HIGH_STRESS_INVESTMENT_MINUTES
        and day.get(MetaCategory.RECOVERY, 0.0) < HIGH_STRESS_RECOVERY_MINUTES
    )


def burnout(acc: TemporalAccumulator) -> Burnout:
    days = high_stress_days(acc)
    if days > 2:
        risk = "High"
        description = "Warning: Multiple days with high load and low recovery."
    elif days > 0:
        risk = "Moderate"
        description = "Some days combined high load with low recovery."
    else:
        risk = "Low"
        description = "Recovery balance looks healthy."
    return Burnout(risk=risk, high_stress_days=days, description=description)


def meta_hours(acc: TemporalAccumulator, meta: MetaCategory) -> float:
    """Unrounded hours for one meta-category."""
    return acc.meta_minutes[meta] / 60


def recovery_rate(acc: TemporalAccumulator) -> int:
    """Recovery hours against RECOVERY_HOURS_PER_DAY per active day, clamped to [0, 100]."""
    expected = acc.active_days * RECOVERY_HOURS_PER_DAY
    rate = round_int(meta_hours(acc, MetaCategory.RECOVERY) / expected * 100)
    return max(0, min(100, rate))


def investment_ratio(acc: TemporalAccumulator) -> float | str:
    passive = meta_hours(acc, MetaCategory.PASSIVE)
    if passive <= 0:
        return INFINITE_RATIO
    return round1(meta_hours(acc, MetaCategory.INVESTMENT) / passive)


def maintenance_ratio(acc: TemporalAccumulator) -> int:
    if acc.total_minutes <= 0:
        return 0
    return round_int(acc.meta_minutes[MetaCategory.MAINTENANCE] / acc.total_minutes * 100)


def deep_work_blocks(acc: TemporalAccumulator) -> int:
    return sum(
        1
        for session in acc.sessions
        if session.meta == MetaCategory.INVESTMENT and session.minutes >= DEEP_WORK_MINUTES
    )


def meta_distribution(acc: TemporalAccumulator) -> list[MetaDistributionEntry]:
    order = (
        MetaCategory.INVESTMENT,
        MetaCategory.RECOVERY,
        MetaCategory.MAINTENANCE,
        MetaCategory.PASSIVE,
    )
    return [
        MetaDistributionEntry(
            name=meta.label,
            value=to_hours(acc.meta_minutes[meta]),
            color=meta.color,
        )
        for meta in order
    ]


def lyubishchev(acc: TemporalAccumulator) -> Lyubishchev:
    """Meta-category time budget, after Lyubishchev's time-accounting method."""
    return Lyubishchev(
        meta_distribution=tuple(meta_distribution(acc)),
        metrics=LyubishchevMetrics(
            recovery_rate=recovery_rate(acc),
            investment_ratio=investment_ratio(acc),
            maintenance_ratio=maintenance_ratio(acc),
            deep_work_blocks=deep_work_blocks(acc),
        ),
    )


def summary(acc: TemporalAccumulator, active_categories: int) -> Summary:
    sessions = acc.session_count
    return Summary(
        total_hours=to_hours(acc.total_minutes),
        active_categories=active_categories,
        longest_session=to_hours(acc.longest_session_minutes),
        total_events=sessions,
        avg_session_length=to_hours(acc.total_minutes / sessions) if sessions else 0.0,
    )
