"""
Free/busy calendars for a resource over a range of days.

Algorithm:
1. Index the resource's active reservations by the local days they touch
2. For each day in the range, generate the opening-hour slots
3. Run the conflict detector for each slot against that day's reservations
4. Attach the earliest conflicting reservation to unavailable slots
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple

from pendulum import DateTime

from .conflicts import ConflictDetector
from .exceptions import ValidationError
from .models import AvailabilitySlot, Interval, Reservation, Resource
from .slot_generator import SlotGenerator, merge_adjacent

DEFAULT_MAX_RANGE_DAYS = 92


@dataclass(frozen=True)
class DayAvailability:
    """Slots of one calendar day, split into available and unavailable."""
    date: date
    slots: Tuple[AvailabilitySlot, ...]

    def available_slots(self) -> List[AvailabilitySlot]:
        return [slot for slot in self.slots if slot.available]

    def unavailable_slots(self) -> List[AvailabilitySlot]:
        return [slot for slot in self.slots if not slot.available]

    def free_windows(self) -> List[Interval]:
        """Contiguous available slots merged into maximal free intervals."""
        return merge_adjacent([slot.interval for slot in self.available_slots()])

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "slots": [slot.to_dict() for slot in self.slots],
        }


class AvailabilityAggregator:
    """
    Combines slot generation and conflict detection into per-day calendars.

    Holds no state between calls; the same inputs always give the same
    result.
    """

    def __init__(
        self,
        conflict_detector: ConflictDetector | None = None,
        max_range_days: int = DEFAULT_MAX_RANGE_DAYS,
    ):
        self.conflict_detector = conflict_detector or ConflictDetector()
        self.max_range_days = max_range_days

    def get_availability(
        self,
        resource: Resource,
        date_from: date,
        date_to: date,
        reservations: Iterable[Reservation],
    ) -> List[DayAvailability]:
        """
        Compute availability for every day of the closed range.

        Args:
            resource: Resource whose calendar is rendered
            date_from: First day (inclusive)
            date_to: Last day (inclusive)
            reservations: Snapshot of the resource's reservations

        Returns:
            One DayAvailability per day, closed days with no slots

        Raises:
            ValidationError: If the range is inverted or too long
        """
        if date_to < date_from:
            raise ValidationError(f"date_to {date_to} is before date_from {date_from}")

        day_count = (date_to - date_from).days + 1
        if day_count > self.max_range_days:
            raise ValidationError(
                f"Availability range of {day_count} days exceeds the maximum of "
                f"{self.max_range_days}"
            )

        generator = SlotGenerator(resource.operating_hours, resource.slot_granularity_minutes)
        by_day = self._index_by_day(resource, reservations)

        days: List[DayAvailability] = []
        for offset in range(day_count):
            day = date_from + timedelta(days=offset)
            day_reservations = by_day.get(day, [])
            slots = tuple(
                self._slot(slot, resource.id, day_reservations)
                for slot in generator.iter_slots(day)
            )
            days.append(DayAvailability(date=day, slots=slots))

        return days

    def for_day(
        self,
        resource: Resource,
        day: date,
        reservations: Iterable[Reservation],
    ) -> DayAvailability:
        """Availability for a single day."""
        return self.get_availability(resource, day, day, reservations)[0]

    def _slot(
        self,
        slot: Interval,
        resource_id: str,
        day_reservations: List[Reservation],
    ) -> AvailabilitySlot:
        conflicts = self.conflict_detector.find_conflicts(slot, resource_id, day_reservations)
        if not conflicts:
            return AvailabilitySlot(interval=slot, available=True)
        return AvailabilitySlot(interval=slot, available=False, occupying_reservation=conflicts[0])

    @staticmethod
    def _index_by_day(
        resource: Resource,
        reservations: Iterable[Reservation],
    ) -> Dict[date, List[Reservation]]:
        """Bucket active reservations under every local day they touch."""
        index: Dict[date, List[Reservation]] = defaultdict(list)

        for reservation in reservations:
            if reservation.resource_id != resource.id or not reservation.is_active:
                continue

            first_day = _local_date(reservation.start, resource.timezone)
            # End is exclusive: a booking ending at midnight stays on its day.
            last_day = _local_date(reservation.end.subtract(microseconds=1), resource.timezone)

            day = first_day
            while day <= last_day:
                index[day].append(reservation)
                day = day + timedelta(days=1)

        return index


def _local_date(moment: DateTime, timezone: str) -> date:
    return moment.in_timezone(timezone).date()
