"""
Tests for the availability aggregator.
"""

from datetime import time

import pendulum
import pytest

from bookingengine.domain.availability import AvailabilityAggregator
from bookingengine.domain.exceptions import ValidationError
from bookingengine.domain.models import Interval, OperatingHours, ReservationStatus


def at(text: str):
    return pendulum.parse(text, tz="Europe/Berlin")


MONDAY = pendulum.date(2024, 11, 25)
TUESDAY = pendulum.date(2024, 11, 26)


class TestAvailabilityAggregator:
    """Tests for AvailabilityAggregator."""

    def test_single_reservation_blocks_its_slots(self, make_resource, make_reservation):
        """Open 08-18, hourly slots, one booking 10-12: two busy slots, eight free."""
        resource = make_resource()
        existing = make_reservation("2024-11-25 10:00", "2024-11-25 12:00")
        aggregator = AvailabilityAggregator()

        days = aggregator.get_availability(resource, MONDAY, MONDAY, [existing])

        assert len(days) == 1
        slots = days[0].slots
        assert len(slots) == 10
        busy = [slot.interval.start.format("HH:mm") for slot in slots if not slot.available]
        assert busy == ["10:00", "11:00"]
        assert len(days[0].available_slots()) == 8
        assert all(
            slot.occupying_reservation == existing for slot in days[0].unavailable_slots()
        )

    def test_free_windows(self, make_resource, make_reservation):
        resource = make_resource()
        existing = make_reservation("2024-11-25 10:00", "2024-11-25 12:00")

        day = AvailabilityAggregator().for_day(resource, MONDAY, [existing])

        assert day.free_windows() == [
            Interval(start=at("2024-11-25 08:00"), end=at("2024-11-25 10:00")),
            Interval(start=at("2024-11-25 12:00"), end=at("2024-11-25 18:00")),
        ]

    def test_partial_overlap_blocks_the_whole_slot(self, make_resource, make_reservation):
        resource = make_resource()
        existing = make_reservation("2024-11-25 10:30", "2024-11-25 10:45")

        day = AvailabilityAggregator().for_day(resource, MONDAY, [existing])

        busy = [slot.interval.start.format("HH:mm") for slot in day.unavailable_slots()]
        assert busy == ["10:00"]

    def test_cancelled_reservation_does_not_block(self, make_resource, make_reservation):
        resource = make_resource()
        cancelled = make_reservation(
            "2024-11-25 10:00", "2024-11-25 12:00", status=ReservationStatus.CANCELLED
        )

        day = AvailabilityAggregator().for_day(resource, MONDAY, [cancelled])

        assert all(slot.available for slot in day.slots)

    def test_earliest_conflict_is_attached(self, make_resource, make_reservation):
        resource = make_resource()
        later = make_reservation("2024-11-25 10:00", "2024-11-25 11:00")
        earlier = make_reservation(
            "2024-11-25 09:30", "2024-11-25 10:30", status=ReservationStatus.PENDING
        )

        day = AvailabilityAggregator().for_day(resource, MONDAY, [later, earlier])

        ten_o_clock = day.slots[2]
        assert ten_o_clock.interval.start == at("2024-11-25 10:00")
        assert ten_o_clock.occupying_reservation == earlier

    def test_reservation_across_midnight_is_indexed_on_both_days(self, make_resource, make_reservation):
        resource = make_resource()
        overnight = make_reservation("2024-11-25 17:00", "2024-11-26 09:00")

        monday, tuesday = AvailabilityAggregator().get_availability(
            resource, MONDAY, TUESDAY, [overnight]
        )

        assert [s.interval.start.hour for s in monday.unavailable_slots()] == [17]
        assert [s.interval.start.hour for s in tuesday.unavailable_slots()] == [8]

    def test_reservation_ending_at_midnight_stays_on_its_day(self, make_resource, make_reservation):
        resource = make_resource()
        evening = make_reservation("2024-11-25 17:00", "2024-11-26 00:00")

        monday, tuesday = AvailabilityAggregator().get_availability(
            resource, MONDAY, TUESDAY, [evening]
        )

        assert len(monday.unavailable_slots()) == 1
        assert tuesday.unavailable_slots() == []

    def test_other_resources_are_ignored(self, make_resource, make_reservation):
        resource = make_resource()
        elsewhere = make_reservation("2024-11-25 10:00", "2024-11-25 12:00", resource_id="room-b")

        day = AvailabilityAggregator().for_day(resource, MONDAY, [elsewhere])

        assert all(slot.available for slot in day.slots)

    def test_closed_days_have_no_slots(self, make_resource):
        hours = OperatingHours(open=time(8, 0), close=time(18, 0), closed_weekdays=frozenset({0, 6}))
        resource = make_resource(operating_hours=hours)

        days = AvailabilityAggregator().get_availability(
            resource, pendulum.date(2024, 11, 22), MONDAY, []
        )

        assert [len(day.slots) for day in days] == [10, 0, 0, 10]

    def test_availability_is_idempotent(self, make_resource, make_reservation):
        resource = make_resource()
        reservations = [
            make_reservation("2024-11-25 10:00", "2024-11-25 12:00"),
            make_reservation("2024-11-26 14:00", "2024-11-26 15:30"),
        ]
        aggregator = AvailabilityAggregator()

        first = aggregator.get_availability(resource, MONDAY, TUESDAY, reservations)
        second = aggregator.get_availability(resource, MONDAY, TUESDAY, reservations)

        assert first == second

    def test_conflict_exclusivity(self, make_resource, make_reservation):
        """Free slots overlap no active reservation, busy slots overlap at least one."""
        resource = make_resource(slot_granularity_minutes=30)
        reservations = [
            make_reservation("2024-11-25 08:15", "2024-11-25 09:00"),
            make_reservation("2024-11-25 12:00", "2024-11-25 13:10", status=ReservationStatus.PENDING),
            make_reservation("2024-11-25 15:00", "2024-11-25 17:00", status=ReservationStatus.CANCELLED),
        ]
        active = [r for r in reservations if r.is_active]

        day = AvailabilityAggregator().for_day(resource, MONDAY, reservations)

        for slot in day.slots:
            overlapping = [r for r in active if r.interval.overlaps(slot.interval)]
            if slot.available:
                assert overlapping == []
            else:
                assert overlapping

    def test_inverted_range_raises(self, make_resource):
        with pytest.raises(ValidationError):
            AvailabilityAggregator().get_availability(make_resource(), TUESDAY, MONDAY, [])

    def test_range_is_limited(self, make_resource):
        aggregator = AvailabilityAggregator(max_range_days=7)

        with pytest.raises(ValidationError, match="exceeds the maximum"):
            aggregator.get_availability(
                make_resource(), MONDAY, pendulum.date(2024, 12, 2), []
            )

    def test_to_dict(self, make_resource, make_reservation):
        resource = make_resource()
        existing = make_reservation("2024-11-25 10:00", "2024-11-25 11:00")

        payload = AvailabilityAggregator().for_day(resource, MONDAY, [existing]).to_dict()

        assert payload["date"] == "2024-11-25"
        assert payload["slots"][0] == {
            "start": "2024-11-25T08:00:00+01:00",
            "end": "2024-11-25T09:00:00+01:00",
            "available": True,
        }
        assert payload["slots"][2]["conflicting_reservation_id"] == existing.id
