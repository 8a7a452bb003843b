"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .availability import AvailabilityAggregator, DayAvailability
from .conflicts import ConflictDetector, OccurrenceCheck
from .models import (
    AvailabilitySlot,
    BookingRequest,
    DailyRecurrence,
    Interval,
    MonthlyRecurrence,
    NoRecurrence,
    OperatingHours,
    Reservation,
    ReservationStatus,
    Resource,
    ResourceStatus,
    WeeklyRecurrence,
)
from .recurrence import ExpansionResult, RecurrenceExpander
from .slot_generator import SlotGenerator
from .validator import BookingDecision, BookingValidator

__all__ = [
    "AvailabilityAggregator",
    "AvailabilitySlot",
    "BookingDecision",
    "BookingRequest",
    "BookingValidator",
    "ConflictDetector",
    "DailyRecurrence",
    "DayAvailability",
    "ExpansionResult",
    "Interval",
    "MonthlyRecurrence",
    "NoRecurrence",
    "OccurrenceCheck",
    "OperatingHours",
    "RecurrenceExpander",
    "Reservation",
    "ReservationStatus",
    "Resource",
    "ResourceStatus",
    "SlotGenerator",
    "WeeklyRecurrence",
]
