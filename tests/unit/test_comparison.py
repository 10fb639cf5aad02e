"""
Tests for period-over-period report comparison.
"""

import pytest

from calvibes.analysis.comparison import compare_reports
from calvibes.analysis.engine import AnalysisEngine


@pytest.fixture
def engine(memory_cache, stub_classifier):
    classifier = stub_classifier({"Gym": "RECOVERY", "Reading": "INVESTMENT"})
    return AnalysisEngine(repository=memory_cache, classifier=classifier)


class TestCompareReports:
    """Tests for comparing two analysis periods"""

    def test_percent_change_against_previous_total(self, engine, make_event):
        """Test difference and percent change of total hours"""
        previous = engine.analyze([make_event("Gym", minutes=120)])
        current = engine.analyze(
            [make_event("Gym", minutes=120), make_event("Reading", day=1, minutes=60)]
        )

        comparison = compare_reports(current, previous)
        assert comparison.total_hours.current == 3.0
        assert comparison.total_hours.previous == 2.0
        assert comparison.diff_hours == 1.0
        assert comparison.percent_change == 50.0

    def test_empty_previous_period(self, engine, make_event):
        """Test that an empty previous period gives a zero percent change"""
        previous = engine.analyze([])
        current = engine.analyze([make_event("Gym", minutes=60)])

        comparison = compare_reports(current, previous)
        assert comparison.percent_change == 0.0
        assert comparison.diff_hours == 1.0

    def test_new_category_compares_against_zero(self, engine, make_event):
        """Test that a category missing last period compares against zero"""
        previous = engine.analyze([make_event("Gym", minutes=60)])
        current = engine.analyze(
            [make_event("Reading", minutes=180), make_event("Gym", day=2, minutes=30)]
        )

        top = {entry.name: entry for entry in compare_reports(current, previous).top_categories}
        assert top["Reading"].current == 3.0
        assert top["Reading"].previous == 0.0
        assert top["Gym"].previous == 1.0

    def test_top_n_follows_current_order(self, engine, make_event):
        """Test that the top categories follow the current distribution"""
        events = [
            make_event(f"Hobby {chr(65 + i)}", day=i, minutes=10 * (i + 1)) for i in range(7)
        ]
        report = engine.analyze(events)

        comparison = compare_reports(report, report, top_n=3)
        assert [entry.name for entry in comparison.top_categories] == [
            "Hobby G",
            "Hobby F",
            "Hobby E",
        ]

    def test_payload_is_camel_case(self, engine, make_event):
        """Test that the comparison serializes with camelCase keys"""
        report = engine.analyze([make_event("Gym")])
        payload = compare_reports(report, report).to_payload()

        assert set(payload) == {
            "totalHours",
            "diffHours",
            "percentChange",
            "avgSessionLength",
            "activeCategories",
            "topCategories",
        }
