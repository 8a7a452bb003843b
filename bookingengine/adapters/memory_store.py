"""
In-memory resource catalog and reservation store.

These replace module-level demo arrays with explicit objects injected into
the booking service. The store hands out snapshots (copies) so the engine
never sees a collection that changes under it.
"""

import logging
import threading
from typing import Dict, Iterable, List, Sequence

from ..domain.exceptions import ReservationNotFoundError, ResourceNotFoundError
from ..domain.models import Interval, Reservation, Resource

logger = logging.getLogger(__name__)


class InMemoryResourceCatalog:
    """Read-only lookup of resources by id."""

    def __init__(self, resources: Iterable[Resource] = ()):
        self._resources: Dict[str, Resource] = {}
        for resource in resources:
            self._resources[resource.id] = resource

    def get(self, resource_id: str) -> Resource:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise ResourceNotFoundError(resource_id) from None

    def list_resources(self) -> List[Resource]:
        return list(self._resources.values())


class InMemoryReservationStore:
    """
    Thread-safe reservation store.

    ``lock_for`` returns one lock per resource; holding it around
    "snapshot, validate, insert" serializes competing bookings of the same
    resource while leaving other resources independent.
    """

    def __init__(self, reservations: Iterable[Reservation] = ()):
        self._reservations: Dict[str, Reservation] = {}
        self._guard = threading.RLock()
        self._resource_locks: Dict[str, threading.Lock] = {}
        for reservation in reservations:
            self._reservations[reservation.id] = reservation

    def lock_for(self, resource_id: str) -> threading.Lock:
        with self._guard:
            if resource_id not in self._resource_locks:
                self._resource_locks[resource_id] = threading.Lock()
            return self._resource_locks[resource_id]

    def for_resource(self, resource_id: str, window: Interval | None = None) -> List[Reservation]:
        """Snapshot of a resource's reservations, optionally restricted to a window."""
        with self._guard:
            matches = [r for r in self._reservations.values() if r.resource_id == resource_id]
        if window is not None:
            matches = [r for r in matches if r.interval.overlaps(window)]
        return sorted(matches, key=lambda r: (r.start, r.id))

    def all(self) -> List[Reservation]:
        with self._guard:
            return sorted(self._reservations.values(), key=lambda r: (r.start, r.id))

    def get(self, reservation_id: str) -> Reservation:
        with self._guard:
            try:
                return self._reservations[reservation_id]
            except KeyError:
                raise ReservationNotFoundError(reservation_id) from None

    def children_of(self, parent_id: str) -> List[Reservation]:
        with self._guard:
            children = [
                r for r in self._reservations.values() if r.recurrence_parent_id == parent_id
            ]
        return sorted(children, key=lambda r: (r.start, r.id))

    def add_many(self, reservations: Sequence[Reservation]) -> None:
        with self._guard:
            for reservation in reservations:
                self._reservations[reservation.id] = reservation
            self._after_write()
        logger.debug("Stored %d reservation(s)", len(reservations))

    def update(self, reservation: Reservation) -> None:
        with self._guard:
            if reservation.id not in self._reservations:
                raise ReservationNotFoundError(reservation.id)
            self._reservations[reservation.id] = reservation
            self._after_write()

    def _after_write(self) -> None:
        """Hook for persistent subclasses."""
