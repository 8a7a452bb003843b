"""Pytest configuration and shared fixtures."""

import itertools
from datetime import time

import pendulum
import pytest

from bookingengine.domain.models import (
    Interval,
    OperatingHours,
    Reservation,
    ReservationStatus,
    Resource,
)

TZ = "Europe/Berlin"


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


@pytest.fixture
def hours() -> OperatingHours:
    """Open 08:00-18:00 every day."""
    return OperatingHours(open=time(8, 0), close=time(18, 0), timezone=TZ)


@pytest.fixture
def make_resource(hours):
    def factory(**overrides) -> Resource:
        fields = {
            "id": "room-a",
            "name": "Meeting Room A",
            "capacity": 4,
            "operating_hours": hours,
            "slot_granularity_minutes": 60,
            "min_advance_minutes": 30,
            "max_duration_minutes": 480,
        }
        fields.update(overrides)
        return Resource(**fields)

    return factory


@pytest.fixture
def make_reservation():
    counter = itertools.count(1)

    def factory(start: str, end: str, **overrides) -> Reservation:
        fields = {
            "id": f"r-{next(counter)}",
            "resource_id": "room-a",
            "interval": Interval(start=_at(start), end=_at(end)),
            "participant_count": 2,
            "status": ReservationStatus.CONFIRMED,
            "title": "Existing booking",
        }
        fields.update(overrides)
        return Reservation(**fields)

    return factory
