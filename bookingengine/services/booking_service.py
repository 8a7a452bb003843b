"""
Application service for availability queries and the reservation lifecycle.

The service fetches resources and reservation snapshots through small
protocols and delegates every scheduling decision to the domain layer. It
also provides the caller-side concurrency contract: validation and insert
for one resource happen under that resource's lock, so two overlapping
requests can never both be accepted. Status transitions re-read the
reservation under the same lock before checking and writing it.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, ContextManager, Iterator, List, Protocol, Sequence, Tuple

import pendulum
from pendulum import DateTime

from ..domain.availability import AvailabilityAggregator, DayAvailability
from ..domain.conflicts import ConflictDetector, OccurrenceCheck
from ..domain.exceptions import InvalidStatusTransitionError, ValidationError
from ..domain.models import (
    BookingRequest,
    Interval,
    Reservation,
    ReservationStatus,
    Resource,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.validator import BookingDecision, BookingValidator

logger = logging.getLogger(__name__)


class ResourceCatalog(Protocol):
    """Protocol describing the resource lookups needed by the service."""

    def get(self, resource_id: str) -> Resource:
        """Return a resource or raise ResourceNotFoundError."""

    def list_resources(self) -> List[Resource]:
        """Return every known resource."""


class ReservationStore(Protocol):
    """Protocol describing the reservation storage needed by the service."""

    def lock_for(self, resource_id: str) -> ContextManager:
        """Return the lock serializing writes for one resource."""

    def for_resource(self, resource_id: str, window: Interval | None = None) -> List[Reservation]:
        """Snapshot of a resource's reservations overlapping ``window``."""

    def get(self, reservation_id: str) -> Reservation:
        """Return a reservation or raise ReservationNotFoundError."""

    def children_of(self, parent_id: str) -> List[Reservation]:
        """Reservations created from the same recurring request."""

    def add_many(self, reservations: Sequence[Reservation]) -> None:
        """Persist new reservations."""

    def update(self, reservation: Reservation) -> None:
        """Persist a changed reservation."""


@dataclass(frozen=True)
class BookingOutcome:
    """Validation decision plus the reservations that were stored for it."""
    decision: BookingDecision
    reservations: Tuple[Reservation, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.decision.accepted

    @property
    def parent(self) -> Reservation | None:
        return self.reservations[0] if self.reservations else None


class BookingService:
    """
    Orchestrates catalog and store access around the scheduling engine.

    Dependency inversion toward protocols makes it easy to plug in the
    in-memory store in tests or a database-backed one in production.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        store: ReservationStore,
        *,
        validator: BookingValidator | None = None,
        aggregator: AvailabilityAggregator | None = None,
        conflict_detector: ConflictDetector | None = None,
        clock: Callable[[], DateTime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._detector = conflict_detector or ConflictDetector()
        self._validator = validator or BookingValidator(conflict_detector=self._detector)
        self._aggregator = aggregator or AvailabilityAggregator(conflict_detector=self._detector)
        self._clock = clock or pendulum.now
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    # Read path

    def get_availability(
        self,
        resource_id: str,
        date_from: date,
        date_to: date,
    ) -> List[DayAvailability]:
        """Free/busy slots for every day of the closed range."""
        resource = self._catalog.get(resource_id)
        window = self._day_window(resource, date_from, date_to)
        reservations = self._store.for_resource(resource_id, window) if window else []

        return self._aggregator.get_availability(resource, date_from, date_to, reservations)

    def availability_payload(self, resource_id: str, date_from: date, date_to: date) -> List[dict]:
        """``get_availability`` rendered as plain dictionaries."""
        return [day.to_dict() for day in self.get_availability(resource_id, date_from, date_to)]

    def check_interval(self, resource_id: str, interval: Interval) -> OccurrenceCheck:
        """Check a single range and report the reservations blocking it."""
        self._catalog.get(resource_id)
        reservations = self._store.for_resource(resource_id, interval)
        conflicts = self._detector.find_conflicts(interval, resource_id, reservations)
        return OccurrenceCheck(interval=interval, conflicts=tuple(conflicts))

    def find_next_available(
        self,
        resource_id: str,
        after: DateTime,
        duration_minutes: int,
        horizon_days: int = 14,
    ) -> Interval | None:
        """
        Find the earliest free interval of ``duration_minutes`` starting on a
        slot boundary at or after ``after``.

        Returns None if nothing fits within ``horizon_days``.
        """
        if duration_minutes < 1:
            raise ValidationError("duration_minutes must be positive")

        resource = self._catalog.get(resource_id)
        generator = SlotGenerator(resource.operating_hours, resource.slot_granularity_minutes)
        first_day = after.in_timezone(resource.timezone).date()

        for offset in range(horizon_days + 1):
            day = first_day + timedelta(days=offset)
            window = resource.operating_hours.window_for_day(day)
            if window is None:
                continue

            reservations = self._store.for_resource(resource_id, window)
            for slot in generator.iter_slots(day):
                if slot.start < after:
                    continue
                candidate = Interval(start=slot.start, end=slot.start.add(minutes=duration_minutes))
                if candidate.end > window.end:
                    break
                if self._detector.is_free(candidate, resource_id, reservations):
                    return candidate

        return None

    # Write path

    def validate_booking(self, request: BookingRequest, now: DateTime | None = None) -> BookingDecision:
        """Validate against the current snapshot without storing anything."""
        resource = self._catalog.get(request.resource_id)
        reservations = self._store.for_resource(request.resource_id)
        return self._validator.validate(request, resource, now or self._clock(), reservations)

    def book(self, request: BookingRequest, now: DateTime | None = None) -> BookingOutcome:
        """
        Validate and store a booking request.

        The first accepted occurrence becomes the parent reservation; further
        occurrences are stored as children pointing to it.
        """
        resource = self._catalog.get(request.resource_id)
        now = now or self._clock()

        with self._store.lock_for(resource.id):
            reservations = self._store.for_resource(resource.id)
            decision = self._validator.validate(request, resource, now, reservations)

            if not decision.accepted:
                logger.info(
                    "Booking of %s rejected: %s", resource.id, decision.rejection
                )
                return BookingOutcome(decision=decision)

            created = self._build_reservations(request, decision)
            self._store.add_many(created)

        logger.info(
            "Booked %s for %d occurrence(s) as %s",
            resource.id,
            len(created),
            decision.status.value,
        )
        return BookingOutcome(decision=decision, reservations=tuple(created))

    def reschedule(
        self,
        reservation_id: str,
        new_interval: Interval,
        now: DateTime | None = None,
    ) -> BookingOutcome:
        """
        Move one reservation to a new interval.

        The reservation's own slot does not count as a conflict.

        Raises:
            InvalidStatusTransitionError: If it is inactive or starts within 30 minutes
        """
        now = now or self._clock()

        with self._locked(reservation_id) as current:
            if not current.can_be_modified(now):
                raise InvalidStatusTransitionError(reservation_id, current.status.value, "modified")

            resource = self._catalog.get(current.resource_id)
            request = BookingRequest(
                resource_id=current.resource_id,
                interval=new_interval,
                participant_count=current.participant_count,
                title=current.title,
            )
            reservations = self._store.for_resource(resource.id)
            decision = self._validator.validate(
                request, resource, now, reservations, exclude_id=reservation_id
            )
            if not decision.accepted:
                return BookingOutcome(decision=decision)

            updated = current.evolve(interval=new_interval)
            self._store.update(updated)

        logger.info("Rescheduled reservation %s to %s", reservation_id, new_interval)
        return BookingOutcome(decision=decision, reservations=(updated,))

    def cancel(self, reservation_id: str, reason: str = "", cascade: bool = False) -> List[Reservation]:
        """
        Cancel a reservation, or with ``cascade`` its whole recurring series.

        Returns the reservations that were cancelled.
        """
        with self._locked(reservation_id) as target:
            if not cascade:
                if not target.can_be_cancelled():
                    raise InvalidStatusTransitionError(reservation_id, target.status.value, "cancelled")
                members = [target]
            else:
                series = self.series(target.recurrence_parent_id or target.id)
                members = [r for r in series if r.can_be_cancelled()]
                if not members:
                    raise InvalidStatusTransitionError(reservation_id, target.status.value, "cancelled")

            cancelled = []
            for member in members:
                updated = member.evolve(
                    status=ReservationStatus.CANCELLED, cancellation_reason=reason
                )
                self._store.update(updated)
                cancelled.append(updated)

        logger.info("Cancelled %d reservation(s) starting from %s", len(cancelled), reservation_id)
        return cancelled

    def approve(self, reservation_id: str, comments: str = "") -> Reservation:
        """Confirm a pending reservation."""
        with self._locked(reservation_id) as reservation:
            self._require_status(reservation, ReservationStatus.PENDING, "approved")
            updated = reservation.evolve(
                status=ReservationStatus.CONFIRMED, approval_comments=comments
            )
            self._store.update(updated)
        return updated

    def reject(self, reservation_id: str, reason: str) -> Reservation:
        """Reject a pending reservation. A reason is mandatory."""
        if not reason.strip():
            raise ValidationError("A rejection reason is required")

        with self._locked(reservation_id) as reservation:
            self._require_status(reservation, ReservationStatus.PENDING, "rejected")
            updated = reservation.evolve(
                status=ReservationStatus.REJECTED, approval_comments=reason
            )
            self._store.update(updated)
        return updated

    def check_in(self, reservation_id: str, now: DateTime | None = None) -> Reservation:
        """Check in from 15 minutes before the start until the end."""
        now = now or self._clock()

        with self._locked(reservation_id) as reservation:
            if not reservation.can_check_in(now):
                raise InvalidStatusTransitionError(reservation_id, reservation.status.value, "checked in")

            updated = reservation.evolve(check_in_time=now)
            self._store.update(updated)
        return updated

    def check_out(self, reservation_id: str, now: DateTime | None = None) -> Reservation:
        """Check out a confirmed, checked-in reservation; it becomes completed."""
        now = now or self._clock()

        with self._locked(reservation_id) as reservation:
            self._require_status(reservation, ReservationStatus.CONFIRMED, "checked out")
            if reservation.check_in_time is None or reservation.check_out_time is not None:
                raise InvalidStatusTransitionError(reservation_id, reservation.status.value, "checked out")

            updated = reservation.evolve(check_out_time=now, status=ReservationStatus.COMPLETED)
            self._store.update(updated)
        return updated

    def series(self, parent_id: str) -> List[Reservation]:
        """Parent reservation followed by its children, in start order."""
        parent = self._store.get(parent_id)
        return [parent] + self._store.children_of(parent_id)

    # Helpers

    def _build_reservations(
        self,
        request: BookingRequest,
        decision: BookingDecision,
    ) -> List[Reservation]:
        created: List[Reservation] = []
        parent_id: str | None = None

        for occurrence in decision.occurrences:
            reservation = Reservation(
                id=self._id_factory(),
                resource_id=request.resource_id,
                interval=occurrence,
                participant_count=request.participant_count,
                status=decision.status,
                title=request.title,
                description=request.description,
                recurrence_parent_id=parent_id,
            )
            if parent_id is None and request.is_recurring:
                parent_id = reservation.id
            created.append(reservation)

        return created

    @contextmanager
    def _locked(self, reservation_id: str) -> Iterator[Reservation]:
        """
        Hold the reservation's resource lock and yield a fresh read of it.

        The record read before locking only names the resource; every status
        check runs against the copy read under the lock.
        """
        resource_id = self._store.get(reservation_id).resource_id
        with self._store.lock_for(resource_id):
            yield self._store.get(reservation_id)

    @staticmethod
    def _require_status(
        reservation: Reservation,
        status: ReservationStatus,
        action: str,
    ) -> None:
        if reservation.status is not status:
            raise InvalidStatusTransitionError(reservation.id, reservation.status.value, action)

    @staticmethod
    def _day_window(resource: Resource, date_from: date, date_to: date) -> Interval | None:
        """Interval covering the local days ``date_from``..``date_to``."""
        if date_to < date_from:
            return None
        start = pendulum.datetime(date_from.year, date_from.month, date_from.day, tz=resource.timezone)
        last = date_to + timedelta(days=1)
        end = pendulum.datetime(last.year, last.month, last.day, tz=resource.timezone)
        return Interval(start=start, end=end)
