"""
Period-over-period comparison of two analysis reports.

Used for "this year vs last year" views: both periods are analyzed
independently and then compared here.
"""

from __future__ import annotations

from calvibes.analysis.models import AnalysisReport, ReportModel, round1

TOP_CATEGORY_COUNT = 5


class MetricPair(ReportModel):
    current: float
    previous: float


class CategoryComparison(ReportModel):
    name: str
    current: float
    previous: float


class PeriodComparison(ReportModel):
    total_hours: MetricPair
    diff_hours: float
    percent_change: float
    avg_session_length: MetricPair
    active_categories: MetricPair
    top_categories: tuple[CategoryComparison, ...]


def compare_reports(
    current: AnalysisReport,
    previous: AnalysisReport,
    top_n: int = TOP_CATEGORY_COUNT,
) -> PeriodComparison:
    """
    Compare two reports.

    Percent change is relative to the previous total and 0 when the previous
    period has no hours. Top categories come from the current period; a
    category absent from the previous period compares against 0.
    """
    current_hours = current.summary.total_hours
    previous_hours = previous.summary.total_hours
    diff = round1(current_hours - previous_hours)
    percent_change = round1(diff / previous_hours * 100) if previous_hours > 0 else 0.0

    previous_values = {category.name: category.value for category in previous.distribution}
    top = [
        CategoryComparison(
            name=category.name,
            current=category.value,
            previous=previous_values.get(category.name, 0.0),
        )
        for category in current.distribution[:top_n]
    ]

    return PeriodComparison(
        total_hours=MetricPair(current=current_hours, previous=previous_hours),
        diff_hours=diff,
        percent_change=percent_change,
        avg_session_length=MetricPair(
            current=current.summary.avg_session_length,
            previous=previous.summary.avg_session_length,
        ),
        active_categories=MetricPair(
            current=current.summary.active_categories,
            previous=previous.summary.active_categories,
        ),
        top_categories=tuple(top),
    )
