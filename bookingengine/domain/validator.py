"""
Business-rule validation of booking requests.

Checks run in a fixed order and stop at the first failure:

0. resource is in service
1. participant count within ``1..capacity``
2. start at least ``min_advance_minutes`` after now
3. duration at most ``max_duration_minutes``
4. no occurrence overlaps an active reservation

Validation never writes; the caller persists the accepted occurrences.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

from pendulum import DateTime

from .conflicts import ConflictDetector, OccurrenceCheck
from .exceptions import ValidationError
from .models import BookingRequest, Interval, Reservation, ReservationStatus, Resource
from .recurrence import RecurrenceExpander
from .rejections import (
    CapacityExceeded,
    DurationExceeded,
    InsufficientAdvanceNotice,
    Rejection,
    ResourceConflict,
    ResourceUnavailable,
)

DEFAULT_RECURRENCE_HORIZON_DAYS = 365


@dataclass(frozen=True)
class BookingDecision:
    """Outcome of validating a booking request."""
    accepted: bool
    status: ReservationStatus | None = None
    occurrences: Tuple[Interval, ...] = ()
    rejection: Rejection | None = None
    skipped: Tuple[OccurrenceCheck, ...] = ()
    truncated: bool = False

    @classmethod
    def reject(cls, rejection: Rejection) -> "BookingDecision":
        return cls(accepted=False, rejection=rejection)

    def to_dict(self) -> dict:
        payload: dict = {"accepted": self.accepted}
        if self.accepted:
            payload["status"] = self.status.value
            payload["occurrences"] = [
                {"start": i.start.to_iso8601_string(), "end": i.end.to_iso8601_string()}
                for i in self.occurrences
            ]
            if self.skipped:
                payload["skipped_occurrences"] = [
                    {
                        "start": check.interval.start.to_iso8601_string(),
                        "conflicting_reservation_ids": list(check.conflicting_ids),
                    }
                    for check in self.skipped
                ]
            payload["truncated"] = self.truncated
        else:
            payload["rejection_reason"] = self.rejection.to_dict()
        return payload


class BookingValidator:
    """
    Applies resource rules to a candidate booking.

    Recurring requests are expanded first and every occurrence is checked
    for conflicts independently. With ``allow_partial`` on the request the
    free occurrences are accepted and the blocked ones reported as skipped.
    """

    def __init__(
        self,
        conflict_detector: ConflictDetector | None = None,
        expander: RecurrenceExpander | None = None,
        recurrence_horizon_days: int = DEFAULT_RECURRENCE_HORIZON_DAYS,
    ):
        self.conflict_detector = conflict_detector or ConflictDetector()
        self.expander = expander or RecurrenceExpander()
        self.recurrence_horizon_days = recurrence_horizon_days

    def validate(
        self,
        request: BookingRequest,
        resource: Resource,
        now: DateTime,
        reservations: Iterable[Reservation],
        cutoff: DateTime | None = None,
        exclude_id: str | None = None,
    ) -> BookingDecision:
        """
        Validate a booking request against a snapshot of reservations.

        Args:
            request: Candidate booking
            resource: Resource the request targets
            now: Current time, used for the advance-notice rule
            reservations: Snapshot of the resource's reservations
            cutoff: Recurrence hard stop; defaults to the configured horizon
            exclude_id: Reservation to ignore during conflict checks (rescheduling)

        Raises:
            ValidationError: If the request targets a different resource
        """
        if request.resource_id != resource.id:
            raise ValidationError(
                f"Request for resource {request.resource_id} validated against {resource.id}"
            )

        rejection = self._check_rules(request, resource, now)
        if rejection is not None:
            return BookingDecision.reject(rejection)

        if cutoff is None:
            cutoff = request.interval.start.add(days=self.recurrence_horizon_days)

        expansion = self.expander.expand_all(request.interval, request.recurrence, cutoff)
        checks = self.conflict_detector.check_occurrences(
            expansion.occurrences, resource.id, reservations, exclude_id=exclude_id
        )
        free = tuple(check.interval for check in checks if check.is_free)
        blocked = tuple(check for check in checks if not check.is_free)

        if blocked and (not request.allow_partial or not free):
            return BookingDecision.reject(ResourceConflict(checks=tuple(checks)))

        status = (
            ReservationStatus.PENDING if resource.requires_approval else ReservationStatus.CONFIRMED
        )
        return BookingDecision(
            accepted=True,
            status=status,
            occurrences=free,
            skipped=blocked,
            truncated=expansion.truncated,
        )

    @staticmethod
    def _check_rules(
        request: BookingRequest,
        resource: Resource,
        now: DateTime,
    ) -> Rejection | None:
        if not resource.is_bookable():
            return ResourceUnavailable(status=resource.status)

        if not 1 <= request.participant_count <= resource.capacity:
            return CapacityExceeded(
                requested=request.participant_count, capacity=resource.capacity
            )

        notice_minutes = int((request.interval.start.timestamp() - now.timestamp()) // 60)
        if notice_minutes < resource.min_advance_minutes:
            return InsufficientAdvanceNotice(
                required_minutes=resource.min_advance_minutes,
                actual_minutes=notice_minutes,
            )

        duration_seconds = (request.interval.end - request.interval.start).total_seconds()
        if duration_seconds > resource.max_duration_minutes * 60:
            return DurationExceeded(
                requested_minutes=math.ceil(duration_seconds / 60),
                max_minutes=resource.max_duration_minutes,
            )

        return None
