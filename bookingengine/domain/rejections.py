"""Structured booking rejection reasons.

Rejections are returned as values, never raised, so callers can branch on
``kind`` instead of matching error strings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Tuple

from .conflicts import OccurrenceCheck
from .models import ResourceStatus


class RejectionKind(Enum):
    """Rejection codes."""

    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    INSUFFICIENT_ADVANCE_NOTICE = "INSUFFICIENT_ADVANCE_NOTICE"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"


@dataclass(frozen=True)
class Rejection:
    """Base rejection with a code and user-safe message."""

    kind: ClassVar[RejectionKind]

    @property
    def message(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class ResourceUnavailable(Rejection):
    """The resource is under maintenance or out of service."""

    kind: ClassVar[RejectionKind] = RejectionKind.RESOURCE_UNAVAILABLE
    status: ResourceStatus

    @property
    def message(self) -> str:
        return f"Resource is not available for booking ({self.status.value})"


@dataclass(frozen=True)
class CapacityExceeded(Rejection):
    """Participant count outside ``1..capacity``."""

    kind: ClassVar[RejectionKind] = RejectionKind.CAPACITY_EXCEEDED
    requested: int
    capacity: int

    @property
    def message(self) -> str:
        if self.requested < 1:
            return "Participant count must be at least 1"
        return f"Participant count ({self.requested}) exceeds capacity ({self.capacity})"

    def to_dict(self) -> dict:
        return {**super().to_dict(), "requested": self.requested, "capacity": self.capacity}


@dataclass(frozen=True)
class InsufficientAdvanceNotice(Rejection):
    """The booking starts too soon (or in the past)."""

    kind: ClassVar[RejectionKind] = RejectionKind.INSUFFICIENT_ADVANCE_NOTICE
    required_minutes: int
    actual_minutes: int

    @property
    def message(self) -> str:
        return (
            f"Reservations must be made at least {self.required_minutes} minutes "
            f"in advance ({self.actual_minutes} given)"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "required_minutes": self.required_minutes,
            "actual_minutes": self.actual_minutes,
        }


@dataclass(frozen=True)
class DurationExceeded(Rejection):
    """The booking is longer than the resource allows."""

    kind: ClassVar[RejectionKind] = RejectionKind.DURATION_EXCEEDED
    requested_minutes: int
    max_minutes: int

    @property
    def message(self) -> str:
        return (
            f"Booking duration ({self.requested_minutes} minutes) cannot exceed "
            f"{self.max_minutes} minutes"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "requested_minutes": self.requested_minutes,
            "max_minutes": self.max_minutes,
        }


@dataclass(frozen=True)
class ResourceConflict(Rejection):
    """At least one occurrence overlaps an active reservation."""

    kind: ClassVar[RejectionKind] = RejectionKind.RESOURCE_CONFLICT
    checks: Tuple[OccurrenceCheck, ...]

    @property
    def blocked(self) -> Tuple[OccurrenceCheck, ...]:
        return tuple(check for check in self.checks if not check.is_free)

    @property
    def conflicting_ids(self) -> Tuple[str, ...]:
        ids: list = []
        for check in self.blocked:
            for reservation_id in check.conflicting_ids:
                if reservation_id not in ids:
                    ids.append(reservation_id)
        return tuple(ids)

    @property
    def message(self) -> str:
        return (
            f"{len(self.blocked)} of {len(self.checks)} occurrence(s) conflict with "
            f"existing reservations: {', '.join(self.conflicting_ids)}"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "conflicting_reservation_ids": list(self.conflicting_ids),
            "blocked_occurrences": [
                {
                    "start": check.interval.start.to_iso8601_string(),
                    "end": check.interval.end.to_iso8601_string(),
                    "conflicting_reservation_ids": list(check.conflicting_ids),
                }
                for check in self.blocked
            ],
        }
