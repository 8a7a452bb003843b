"""
Conflict detection between a candidate interval and existing reservations.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import Interval, Reservation


@dataclass(frozen=True)
class OccurrenceCheck:
    """Conflict report for one candidate interval."""
    interval: Interval
    conflicts: Tuple[Reservation, ...] = ()

    @property
    def is_free(self) -> bool:
        return not self.conflicts

    @property
    def conflicting_ids(self) -> Tuple[str, ...]:
        return tuple(reservation.id for reservation in self.conflicts)


class ConflictDetector:
    """
    Finds the active reservations that block a candidate interval.

    Only ``pending`` and ``confirmed`` reservations block; cancelled,
    rejected and completed ones are ignored. Overlap is half-open, so a
    booking ending at 10:00 never blocks one starting at 10:00.
    """

    def find_conflicts(
        self,
        candidate: Interval,
        resource_id: str,
        reservations: Iterable[Reservation],
        exclude_id: str | None = None,
    ) -> List[Reservation]:
        """
        Return the blocking reservations, ordered by start time.

        Args:
            candidate: Interval that should be booked
            resource_id: Resource the candidate is for
            reservations: Reservations in scope (other resources are skipped)
            exclude_id: Reservation to ignore, e.g. the one being rescheduled
        """
        conflicts = [
            reservation
            for reservation in self._blocking(resource_id, reservations, exclude_id)
            if reservation.interval.overlaps(candidate)
        ]
        return sorted(conflicts, key=lambda r: (r.start, r.end, r.id))

    def is_free(
        self,
        candidate: Interval,
        resource_id: str,
        reservations: Iterable[Reservation],
        exclude_id: str | None = None,
    ) -> bool:
        """Check whether nothing blocks the candidate."""
        return not self.find_conflicts(candidate, resource_id, reservations, exclude_id)

    def check_occurrences(
        self,
        occurrences: Sequence[Interval],
        resource_id: str,
        reservations: Iterable[Reservation],
        exclude_id: str | None = None,
    ) -> List[OccurrenceCheck]:
        """
        Check every occurrence of a recurring request independently.

        Partial conflicts are reported per occurrence; deciding what to do
        with the free subset is up to the caller.
        """
        blocking = sorted(
            self._blocking(resource_id, reservations, exclude_id),
            key=lambda r: (r.start, r.end, r.id),
        )
        return [
            OccurrenceCheck(
                interval=occurrence,
                conflicts=tuple(r for r in blocking if r.interval.overlaps(occurrence)),
            )
            for occurrence in occurrences
        ]

    @staticmethod
    def _blocking(
        resource_id: str,
        reservations: Iterable[Reservation],
        exclude_id: str | None,
    ) -> List[Reservation]:
        return [
            reservation
            for reservation in reservations
            if reservation.resource_id == resource_id
            and reservation.is_active
            and reservation.id != exclude_id
        ]
