"""
Domain models for intervals, recurrence patterns, resources and reservations.

Weekdays throughout the engine use the 0=Sunday ... 6=Saturday convention
used by the booking front ends.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import ClassVar, FrozenSet, Tuple, Union

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError

WEEKDAYS = range(7)


def weekday_index(value: date) -> int:
    """Return the weekday of ``value`` with 0=Sunday, 6=Saturday."""
    return value.isoweekday() % 7


@dataclass(frozen=True)
class Interval:
    """
    Immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "Interval") -> bool:
        """Check if this range overlaps with another. Touching ranges do not."""
        return self.start < other.end and other.start < self.end

    def contains(self, point: DateTime) -> bool:
        """Check if a point in time falls inside the range."""
        return self.start <= point < self.end

    def intersect(self, other: "Interval") -> "Interval | None":
        """
        Calculate the intersection of two ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return Interval(start=max(self.start, other.start), end=min(self.end, other.end))

    def shifted(self, **offset: int) -> "Interval":
        """Move the range by a pendulum offset (``days=1``, ``months=2``...)."""
        return Interval(start=self.start.add(**offset), end=self.end.add(**offset))

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class RecurrenceType(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class NoRecurrence:
    """A one-off booking."""
    type: ClassVar[RecurrenceType] = RecurrenceType.NONE


@dataclass(frozen=True)
class _RepeatingPattern:
    """
    Fields shared by every repeating pattern.

    ``end_date`` and ``max_occurrences`` are both optional; expansion stops at
    whichever is hit first and is always bounded by the expander's cutoff.
    """
    interval: int = 1
    end_date: DateTime | None = None
    max_occurrences: int | None = None

    def __post_init__(self):
        if self.interval < 1:
            raise ValidationError(f"Recurrence interval must be positive, got {self.interval}")
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise ValidationError(
                f"max_occurrences must be positive, got {self.max_occurrences}"
            )

    @property
    def is_bounded(self) -> bool:
        """True if the pattern itself ends, without relying on a cutoff."""
        return self.end_date is not None or self.max_occurrences is not None


@dataclass(frozen=True)
class DailyRecurrence(_RepeatingPattern):
    type: ClassVar[RecurrenceType] = RecurrenceType.DAILY


@dataclass(frozen=True)
class WeeklyRecurrence(_RepeatingPattern):
    """Every ``interval`` weeks on ``days_of_week`` (0=Sunday)."""
    type: ClassVar[RecurrenceType] = RecurrenceType.WEEKLY
    days_of_week: FrozenSet[int] = frozenset()

    def __post_init__(self):
        super().__post_init__()
        days = frozenset(self.days_of_week)
        invalid = sorted(day for day in days if day not in WEEKDAYS)
        if invalid:
            raise ValidationError(f"days_of_week must be between 0 and 6, got {invalid}")
        object.__setattr__(self, "days_of_week", days)


@dataclass(frozen=True)
class MonthlyRecurrence(_RepeatingPattern):
    type: ClassVar[RecurrenceType] = RecurrenceType.MONTHLY


RecurrencePattern = Union[NoRecurrence, DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence]

_PATTERN_TYPES = {
    RecurrenceType.DAILY: DailyRecurrence,
    RecurrenceType.WEEKLY: WeeklyRecurrence,
    RecurrenceType.MONTHLY: MonthlyRecurrence,
}


def pattern_from_dict(data: dict, timezone: str = "UTC") -> RecurrencePattern:
    """
    Build a recurrence pattern from a loosely typed mapping.

    Accepts the shape used by the booking front ends::

        {"type": "weekly", "interval": 2, "days_of_week": [1, 3],
         "end_date": "2025-06-30", "max_occurrences": null}

    Raises:
        ValidationError: If the type is unknown or a field is malformed
    """
    try:
        kind = RecurrenceType(data.get("type") or RecurrenceType.NONE.value)
    except ValueError as exc:
        raise ValidationError(f"Unsupported recurrence type: {data.get('type')!r}") from exc

    if kind is RecurrenceType.NONE:
        return NoRecurrence()

    end_date = data.get("end_date")
    if isinstance(end_date, str):
        try:
            parsed = pendulum.parse(end_date, tz=timezone)
        except ValueError as exc:
            raise ValidationError(f"Invalid recurrence end_date: {end_date!r}") from exc
        # A bare date includes the whole day.
        end_date = parsed.end_of("day") if len(end_date) == 10 else parsed

    try:
        interval = data.get("interval")
        max_occurrences = data.get("max_occurrences")
        kwargs = {
            "interval": 1 if interval is None else int(interval),
            "end_date": end_date,
            "max_occurrences": None if max_occurrences is None else int(max_occurrences),
        }
        if kind is RecurrenceType.WEEKLY:
            kwargs["days_of_week"] = frozenset(int(day) for day in data.get("days_of_week") or ())
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed {kind.value} recurrence pattern: {exc}") from exc

    return _PATTERN_TYPES[kind](**kwargs)


@dataclass(frozen=True)
class OperatingHours:
    """
    Daily opening hours of a resource.

    All datetimes produced for a day are in ``timezone``.
    """
    open: time
    close: time
    closed_weekdays: FrozenSet[int] = frozenset()  # 0=Sunday
    timezone: str = "Europe/Berlin"

    def __post_init__(self):
        if self.open >= self.close:
            raise ValidationError(
                f"Opening time {self.open} must be before closing time {self.close}"
            )
        object.__setattr__(self, "closed_weekdays", frozenset(self.closed_weekdays))

    def is_open_on(self, day: date) -> bool:
        """Check if the resource opens at all on a given day."""
        return weekday_index(day) not in self.closed_weekdays

    def at(self, day: date, moment: time) -> DateTime:
        """Combine a calendar day and a time of day in the resource timezone."""
        return pendulum.datetime(
            day.year, day.month, day.day, moment.hour, moment.minute, tz=self.timezone
        )

    def window_for_day(self, day: date) -> Interval | None:
        """
        Get the opening window for a specific day.
        Returns None if the resource is closed that day.
        """
        if not self.is_open_on(day):
            return None

        return Interval(start=self.at(day, self.open), end=self.at(day, self.close))


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


@dataclass(frozen=True)
class Resource:
    """A bookable space: room, desk or studio."""
    id: str
    capacity: int
    operating_hours: OperatingHours
    slot_granularity_minutes: int = 60
    min_advance_minutes: int = 30
    max_duration_minutes: int = 480
    requires_approval: bool = False
    name: str = ""
    status: ResourceStatus = ResourceStatus.AVAILABLE

    def __post_init__(self):
        if self.capacity < 1:
            raise ValidationError(f"Resource capacity must be positive, got {self.capacity}")
        if self.slot_granularity_minutes < 1:
            raise ValidationError("slot_granularity_minutes must be positive")
        if self.min_advance_minutes < 0:
            raise ValidationError("min_advance_minutes cannot be negative")
        if self.max_duration_minutes < 1:
            raise ValidationError("max_duration_minutes must be positive")

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def timezone(self) -> str:
        return self.operating_hours.timezone

    def is_bookable(self) -> bool:
        return self.status is ResourceStatus.AVAILABLE


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_active(self) -> bool:
        """Only pending and confirmed reservations occupy a resource."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})

# Reservations can be modified up to this many minutes before they start.
MODIFICATION_CUTOFF_MINUTES = 30
# Check-in opens this many minutes before the start.
CHECK_IN_WINDOW_MINUTES = 15


@dataclass(frozen=True)
class Reservation:
    """A booking of one resource for one interval."""
    id: str
    resource_id: str
    interval: Interval
    participant_count: int
    status: ReservationStatus = ReservationStatus.CONFIRMED
    title: str = ""
    recurrence_parent_id: str | None = None
    description: str = ""
    cancellation_reason: str = ""
    approval_comments: str = ""
    check_in_time: DateTime | None = None
    check_out_time: DateTime | None = None

    @property
    def start(self) -> DateTime:
        return self.interval.start

    @property
    def end(self) -> DateTime:
        return self.interval.end

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def conflicts_with(self, other: "Reservation") -> bool:
        """Two reservations conflict if they share a resource and overlap."""
        return self.resource_id == other.resource_id and self.interval.overlaps(other.interval)

    def can_be_cancelled(self) -> bool:
        return self.is_active

    def can_be_modified(self, now: DateTime) -> bool:
        return self.is_active and now < self.start.subtract(minutes=MODIFICATION_CUTOFF_MINUTES)

    def can_check_in(self, now: DateTime) -> bool:
        return (
            self.status is ReservationStatus.CONFIRMED
            and self.check_in_time is None
            and self.start.subtract(minutes=CHECK_IN_WINDOW_MINUTES) <= now < self.end
        )

    def evolve(self, **changes) -> "Reservation":
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    One bookable slot of a day and whether it is free.

    Derived on every query, never persisted.
    """
    interval: Interval
    available: bool
    occupying_reservation: Reservation | None = None

    def to_dict(self) -> dict:
        payload = {
            "start": self.interval.start.to_iso8601_string(),
            "end": self.interval.end.to_iso8601_string(),
            "available": self.available,
        }
        if self.occupying_reservation is not None:
            payload["conflicting_reservation_id"] = self.occupying_reservation.id
        return payload


@dataclass(frozen=True)
class BookingRequest:
    """A candidate booking submitted by a member."""
    resource_id: str
    interval: Interval
    participant_count: int
    recurrence: RecurrencePattern = field(default_factory=NoRecurrence)
    title: str = ""
    description: str = ""
    allow_partial: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.recurrence.type is not RecurrenceType.NONE


__all__ = [
    "ACTIVE_STATUSES",
    "AvailabilitySlot",
    "BookingRequest",
    "DailyRecurrence",
    "Interval",
    "MonthlyRecurrence",
    "NoRecurrence",
    "OperatingHours",
    "RecurrencePattern",
    "RecurrenceType",
    "Reservation",
    "ReservationStatus",
    "Resource",
    "ResourceStatus",
    "WeeklyRecurrence",
    "pattern_from_dict",
    "weekday_index",
]
