"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: enforces valid lifecycle transitions
  (PENDING -> CONFIRMED -> COMPLETED, PENDING | CONFIRMED -> CANCELLED).
- ``DriverLocation`` is the last-known position annotating a driver's user
  record; last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import BOOKING_TRANSITIONS, BookingStatus


class InvalidStateTransition(Exception):
    """Raised when a booking status change violates the state machine."""


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    """Re-sending the current status is accepted as an idempotent no-op."""
    return new == current or new in BOOKING_TRANSITIONS.get(current, set())


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class DriverLocation:
    driver_id: str
    location: Location
    last_updated: datetime

    def as_dict(self) -> dict:
        return {**self.location.as_dict(), "updatedAt": self.last_updated}


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[str] = None
    user_id: str = ""
    status: BookingStatus = BookingStatus.PENDING
    driver_id: Optional[str] = None

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not can_transition(self.status, new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
