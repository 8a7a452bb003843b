"""
Generation of fixed-granularity bookable slots within opening hours.

Pure domain logic: slots depend only on the opening hours and the
granularity, never on existing reservations.
"""

from datetime import date
from typing import Iterator, List, Sequence

from .exceptions import ValidationError
from .models import Interval, OperatingHours


class SlotGenerator:
    """
    Splits a day's opening window into contiguous slots.

    Example:
    Open: 08:00 - 10:30, granularity 60
    Result: [08:00-09:00, 09:00-10:00, 10:00-10:30]

    The last slot is truncated to the closing time and still offered.
    """

    def __init__(self, operating_hours: OperatingHours, granularity_minutes: int):
        if granularity_minutes < 1:
            raise ValidationError(
                f"Slot granularity must be positive, got {granularity_minutes}"
            )
        self.operating_hours = operating_hours
        self.granularity_minutes = granularity_minutes

    def iter_slots(self, day: date) -> Iterator[Interval]:
        """Lazily yield the slots of a day in start-time order."""
        window = self.operating_hours.window_for_day(day)

        if window is None:
            return

        current = window.start
        while current < window.end:
            slot_end = min(current.add(minutes=self.granularity_minutes), window.end)
            yield Interval(start=current, end=slot_end)
            current = slot_end

    def slots_for_day(self, day: date) -> List[Interval]:
        """Return all slots of a day. Empty if the resource is closed."""
        return list(self.iter_slots(day))


def merge_adjacent(intervals: Sequence[Interval]) -> List[Interval]:
    """
    Merge overlapping or adjacent intervals.

    Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
    """
    if not intervals:
        return []

    sorted_intervals = sorted(intervals, key=lambda i: i.start)
    merged: List[Interval] = [sorted_intervals[0]]

    for current in sorted_intervals[1:]:
        last = merged[-1]

        # No gap between them
        if current.start <= last.end:
            merged[-1] = Interval(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)

    return merged
