"""
Adapters layer - Storage for resources and reservations.
"""

from .json_store import (
    JsonReservationStore,
    dump_reservations_to_json,
    load_reservations_from_json,
)
from .memory_store import InMemoryReservationStore, InMemoryResourceCatalog

__all__ = [
    "InMemoryReservationStore",
    "InMemoryResourceCatalog",
    "JsonReservationStore",
    "dump_reservations_to_json",
    "load_reservations_from_json",
]
