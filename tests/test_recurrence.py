"""
Tests for recurrence expansion.
"""

import pendulum
import pytest

from bookingengine.domain.exceptions import ValidationError
from bookingengine.domain.models import (
    DailyRecurrence,
    Interval,
    MonthlyRecurrence,
    NoRecurrence,
    WeeklyRecurrence,
    weekday_index,
)
from bookingengine.domain.recurrence import RecurrenceExpander


def at(text: str):
    return pendulum.parse(text, tz="Europe/Berlin")


def anchor(start: str, end: str) -> Interval:
    return Interval(start=at(start), end=at(end))


FAR_CUTOFF = at("2026-01-01 00:00")


class TestDailyRecurrence:
    """Tests for daily patterns."""

    def test_every_other_day_until_end_date(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(interval=2, end_date=at("2024-11-30 23:59")),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-25 09:00"),
            at("2024-11-27 09:00"),
            at("2024-11-29 09:00"),
        ]
        assert not result.truncated

    def test_occurrence_on_end_date_is_included(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(end_date=at("2024-11-27 09:00")),
            FAR_CUTOFF,
        )

        assert len(result) == 3

    def test_max_occurrences(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(max_occurrences=3),
            FAR_CUTOFF,
        )

        assert len(result) == 3
        assert not result.truncated

    def test_every_occurrence_keeps_anchor_duration(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:45"),
            DailyRecurrence(max_occurrences=5),
            FAR_CUTOFF,
        )

        assert {o.duration_minutes() for o in result} == {105}

    def test_unbounded_pattern_stops_at_cutoff(self):
        """Open-ended patterns stop at the cutoff and report truncation."""
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(),
            at("2024-11-30 09:00"),
        )

        # An occurrence starting exactly at the cutoff is not emitted.
        assert len(result) == 5
        assert result.occurrences[-1].start == at("2024-11-29 09:00")
        assert result.truncated

    def test_cutoff_applies_even_when_pattern_is_bounded(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(max_occurrences=100),
            at("2024-11-28 00:00"),
        )

        assert len(result) == 3
        assert result.truncated

    def test_expansion_ceiling(self):
        expander = RecurrenceExpander(max_expansion=4)

        result = expander.expand_all(
            anchor("2024-11-25 09:00", "2024-11-25 10:00"),
            DailyRecurrence(),
            FAR_CUTOFF,
        )

        assert len(result) == 4
        assert result.truncated

    def test_cutoff_is_mandatory(self):
        expander = RecurrenceExpander()

        with pytest.raises(ValidationError, match="cutoff"):
            expander.expand(
                anchor("2024-11-25 09:00", "2024-11-25 10:00"),
                DailyRecurrence(max_occurrences=3),
                None,
            )


class TestWeeklyRecurrence:
    """Tests for weekly patterns."""

    def test_monday_wednesday_friday_twelve_times(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 10:00", "2024-11-25 11:00"),  # Monday
            WeeklyRecurrence(days_of_week=frozenset({1, 3, 5}), max_occurrences=12),
            FAR_CUTOFF,
        )

        starts = [o.start for o in result]
        assert len(starts) == 12
        assert {weekday_index(s) for s in starts} == {1, 3, 5}
        assert starts == sorted(starts)
        assert all(s.hour == 10 and s.minute == 0 for s in starts)
        assert starts[-1] == at("2024-12-20 10:00")

    def test_every_other_week(self):
        """interval=2 with {Mon, Wed} is Mon/Wed every other week."""
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-25 10:00", "2024-11-25 11:00"),
            WeeklyRecurrence(interval=2, days_of_week=frozenset({1, 3}), max_occurrences=4),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-25 10:00"),
            at("2024-11-27 10:00"),
            at("2024-12-09 10:00"),
            at("2024-12-11 10:00"),
        ]

    def test_days_before_the_anchor_are_skipped(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-27 10:00", "2024-11-27 11:00"),  # Wednesday
            WeeklyRecurrence(days_of_week=frozenset({1, 3}), max_occurrences=3),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-27 10:00"),
            at("2024-12-02 10:00"),
            at("2024-12-04 10:00"),
        ]

    def test_empty_days_fall_back_to_anchor_weekday(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-28 14:00", "2024-11-28 15:00"),  # Thursday
            WeeklyRecurrence(max_occurrences=3),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-28 14:00"),
            at("2024-12-05 14:00"),
            at("2024-12-12 14:00"),
        ]

    def test_sunday_belongs_to_the_following_week(self):
        """Weeks start on Sunday, so {0, 6} covers Sunday then Saturday."""
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-24 10:00", "2024-11-24 11:00"),  # Sunday
            WeeklyRecurrence(days_of_week=frozenset({0, 6}), max_occurrences=3),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-24 10:00"),
            at("2024-11-30 10:00"),
            at("2024-12-01 10:00"),
        ]

    def test_local_time_is_kept_across_dst_change(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-10-21 10:00", "2024-10-21 11:00"),
            WeeklyRecurrence(max_occurrences=2),
            FAR_CUTOFF,
        )

        second = result.occurrences[1]
        assert second.start == at("2024-10-28 10:00")
        assert second.duration_minutes() == 60


class TestMonthlyRecurrence:
    """Tests for monthly patterns."""

    def test_end_of_month_is_clamped_in_leap_year(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-01-31 09:00", "2024-01-31 10:00"),
            MonthlyRecurrence(max_occurrences=4),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-01-31 09:00"),
            at("2024-02-29 09:00"),
            at("2024-03-31 09:00"),
            at("2024-04-30 09:00"),
        ]

    def test_end_of_month_is_clamped(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2025-01-31 09:00", "2025-01-31 10:00"),
            MonthlyRecurrence(max_occurrences=2),
            FAR_CUTOFF,
        )

        assert result.occurrences[1].start == at("2025-02-28 09:00")

    def test_every_third_month(self):
        expander = RecurrenceExpander()

        result = expander.expand_all(
            anchor("2024-11-15 09:00", "2024-11-15 10:00"),
            MonthlyRecurrence(interval=3, end_date=at("2025-06-30 00:00")),
            FAR_CUTOFF,
        )

        assert [o.start for o in result] == [
            at("2024-11-15 09:00"),
            at("2025-02-15 09:00"),
            at("2025-05-15 09:00"),
        ]


class TestNoRecurrence:
    """Tests for one-off requests."""

    def test_yields_only_the_anchor(self):
        expander = RecurrenceExpander()
        single = anchor("2024-11-25 09:00", "2024-11-25 10:00")

        result = expander.expand_all(single, NoRecurrence(), FAR_CUTOFF)

        assert result.occurrences == (single,)
        assert not result.truncated


def test_expansion_is_lazy_and_restartable():
    """Iterating twice gives the same occurrences."""
    expander = RecurrenceExpander()

    expansion = expander.expand(
        anchor("2024-11-25 09:00", "2024-11-25 10:00"),
        DailyRecurrence(),
        FAR_CUTOFF,
    )

    first_pass = [o.start for _, o in zip(range(3), expansion)]
    second_pass = [o.start for _, o in zip(range(3), expansion)]

    assert first_pass == second_pass == [
        at("2024-11-25 09:00"),
        at("2024-11-26 09:00"),
        at("2024-11-27 09:00"),
    ]
