"""
JSON file persistence for reservations.

Used by the CLI and for demo data. The file holds a list of reservation
objects::

    [
        {
            "id": "r-1",
            "resourceId": "room-a",
            "start": "2024-11-25T10:00:00+01:00",
            "end": "2024-11-25T12:00:00+01:00",
            "participantCount": 4,
            "status": "confirmed",
            "title": "Team sync"
        }
    ]
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConfigError, ValidationError
from ..domain.models import Interval, Reservation, ReservationStatus
from .memory_store import InMemoryReservationStore

logger = logging.getLogger(__name__)


def _parse_datetime(value: str, timezone: str) -> DateTime:
    """Parse an ISO 8601 string into a pendulum DateTime in ``timezone``."""
    dt = pendulum.parse(value, tz=timezone)

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise ValueError(f"Could not parse datetime: {value}")


def _format_datetime(value: DateTime | None) -> str | None:
    return value.to_iso8601_string() if value is not None else None


def reservation_to_dict(reservation: Reservation) -> Dict[str, Any]:
    """Serialize a reservation to the JSON file shape."""
    return {
        "id": reservation.id,
        "resourceId": reservation.resource_id,
        "start": _format_datetime(reservation.start),
        "end": _format_datetime(reservation.end),
        "participantCount": reservation.participant_count,
        "status": reservation.status.value,
        "title": reservation.title,
        "description": reservation.description,
        "recurrenceParentId": reservation.recurrence_parent_id,
        "cancellationReason": reservation.cancellation_reason,
        "approvalComments": reservation.approval_comments,
        "checkInTime": _format_datetime(reservation.check_in_time),
        "checkOutTime": _format_datetime(reservation.check_out_time),
    }


def reservation_from_dict(data: Dict[str, Any], timezone: str) -> Reservation:
    """
    Build a reservation from the JSON file shape.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a value cannot be parsed
    """
    check_in = data.get("checkInTime")
    check_out = data.get("checkOutTime")

    return Reservation(
        id=str(data["id"]),
        resource_id=str(data["resourceId"]),
        interval=Interval(
            start=_parse_datetime(data["start"], timezone),
            end=_parse_datetime(data["end"], timezone),
        ),
        participant_count=int(data.get("participantCount", 1)),
        status=ReservationStatus(data.get("status", ReservationStatus.CONFIRMED.value)),
        title=data.get("title", ""),
        description=data.get("description", ""),
        recurrence_parent_id=data.get("recurrenceParentId"),
        cancellation_reason=data.get("cancellationReason", ""),
        approval_comments=data.get("approvalComments", ""),
        check_in_time=_parse_datetime(check_in, timezone) if check_in else None,
        check_out_time=_parse_datetime(check_out, timezone) if check_out else None,
    )


def load_reservations_from_json(path: Path, timezone: str) -> List[Reservation]:
    """
    Load reservations from a JSON file.

    A missing file is an empty store. Malformed entries are skipped with a
    warning, a malformed file raises.

    Raises:
        ConfigError: If the file is not a JSON list
    """
    if not path.exists():
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise ConfigError(f"Reservation file {path} must contain a list.")

    reservations: List[Reservation] = []
    for entry in raw:
        if not isinstance(entry, dict):
            logger.warning("Skipping reservation entry that is not an object: %r", entry)
            continue
        try:
            reservations.append(reservation_from_dict(entry, timezone))
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.warning("Skipping invalid reservation entry %r: %s", entry, exc)

    return reservations


def dump_reservations_to_json(path: Path, reservations: Iterable[Reservation]) -> None:
    """
    Write reservations to a JSON file, replacing its content.

    The payload goes to a sibling temporary file first and is then moved
    over ``path``, so a failed write leaves the previous file intact.
    """
    payload = [reservation_to_dict(reservation) for reservation in reservations]
    tmp_path = path.with_name(f"{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    tmp_path.replace(path)


class JsonReservationStore(InMemoryReservationStore):
    """In-memory store that is loaded from and saved back to a JSON file."""

    def __init__(self, path: Path, timezone: str):
        self.path = path
        self.timezone = timezone
        super().__init__(load_reservations_from_json(path, timezone))

    def _after_write(self) -> None:
        dump_reservations_to_json(self.path, self.all())
        logger.debug("Saved reservations to %s", self.path)
