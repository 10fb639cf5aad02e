"""
Tests for domain models: meta-category coercion, RawEvent validation, rounding.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from calvibes.analysis.models import (
    CacheEntry,
    EventGroup,
    MetaCategory,
    RawEvent,
    round1,
    round_int,
    to_hours,
)

START = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class TestMetaCategoryCoerce:
    """Any unresolved label falls back to MAINTENANCE."""

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("INVESTMENT", MetaCategory.INVESTMENT),
            (" recovery ", MetaCategory.RECOVERY),
            ("Passive", MetaCategory.PASSIVE),
            (MetaCategory.PASSIVE, MetaCategory.PASSIVE),
            ("Leisure", MetaCategory.MAINTENANCE),
            ("", MetaCategory.MAINTENANCE),
            (None, MetaCategory.MAINTENANCE),
            (42, MetaCategory.MAINTENANCE),
        ],
    )
    def test_coerce(self, label, expected):
        """Test that labels are matched case-insensitively and unknowns default"""
        assert MetaCategory.coerce(label) is expected

    def test_label_and_color(self):
        """Test the display label and fixed color of a meta-category"""
        assert MetaCategory.INVESTMENT.label == "Investment"
        assert MetaCategory.MAINTENANCE.color == "#94A3B8"


class TestRawEvent:
    """Tests for RawEvent validation"""

    def test_duration_minutes(self):
        """Test that duration is computed in minutes"""
        event = RawEvent(title="Gym", start=START, end=START + timedelta(minutes=45))
        assert event.duration_minutes == 45

    def test_missing_title_defaults_to_empty(self):
        """Test that a missing title becomes an empty string"""
        event = RawEvent(title=None, start=START, end=START)
        assert event.title == ""

    def test_naive_timestamps_rejected(self):
        """Test that timestamps without an offset are rejected"""
        with pytest.raises(ValidationError):
            RawEvent(title="Gym", start=datetime(2024, 3, 4, 9), end=START)

    def test_end_before_start_rejected(self):
        """Test that a reversed interval is rejected"""
        with pytest.raises(ValidationError):
            RawEvent(title="Gym", start=START, end=START - timedelta(minutes=1))

    def test_frozen(self):
        """Test that events are immutable"""
        event = RawEvent(title="Gym", start=START, end=START)
        with pytest.raises(ValidationError):
            event.title = "Other"


class TestEventGroup:
    """Tests for EventGroup accumulation"""

    def test_titles_are_an_ordered_set(self):
        """Test that titles are de-duplicated in insertion order"""
        group = EventGroup(key="BOXING")
        for title in ["Boxing 15", "BOXING-7", "Boxing 15"]:
            group.add(title, RawEvent(title=title, start=START, end=START + timedelta(hours=1)))

        assert group.title_list == ["Boxing 15", "BOXING-7"]
        assert len(group.events) == 3
        assert group.minutes == 180
        assert group.meta is None


class TestCacheEntry:
    """Tests for the cache row model"""

    def test_unknown_stored_label_coerced(self):
        """Test that an unknown stored label becomes MAINTENANCE"""
        entry = CacheEntry(
            user_id="default", canonical_key="GYM", meta_category="gym", display_name="Gym"
        )
        assert entry.meta_category is MetaCategory.MAINTENANCE


class TestRounding:
    """Report rounding is half-up, not banker's rounding."""

    def test_round1_half_up(self):
        """Test one-decimal rounding of halves upwards"""
        assert round1(0.25) == 0.3
        assert round1(2.35) == 2.4
        assert round1(1.04) == 1.0

    def test_round_int_half_up(self):
        """Test integer rounding of halves upwards"""
        assert round_int(2.5) == 3
        assert round_int(33.3) == 33

    def test_to_hours(self):
        """Test minute to hour conversion"""
        assert to_hours(90) == 1.5
        assert to_hours(0) == 0.0
