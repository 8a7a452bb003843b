"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingOutcome, BookingService, ReservationStore, ResourceCatalog

__all__ = ["BookingOutcome", "BookingService", "ReservationStore", "ResourceCatalog"]
