"""
Socket event names and payload schemas.

Inbound payloads are validated with pydantic; field aliases keep the
camelCase wire names used by the web and driver apps.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from taxitour.domain.entities import DriverLocation
from taxitour.domain.enums import BookingStatus, ErrorKind

# ── Inbound ───────────────────────────────────────────────────────────

AUTHENTICATE = "authenticate"
LOCATION_UPDATE = "locationUpdate"
BOOKING_STATUS_UPDATE = "bookingStatusUpdate"

# ── Outbound ──────────────────────────────────────────────────────────

AUTHENTICATED = "authenticated"
AUTHENTICATION_ERROR = "authenticationError"
DRIVER_ONLINE = "driverOnline"
DRIVER_LOCATION_UPDATED = "driverLocationUpdated"
DRIVER_OFFLINE = "driverOffline"
BOOKING_STATUS_CHANGED = "bookingStatusChanged"
LOCATION_UPDATE_ERROR = "locationUpdateError"
BOOKING_STATUS_ERROR = "bookingStatusError"
ERROR = "error"


class _Payload(BaseModel):
    model_config = {"populate_by_name": True}


class LatLng(_Payload):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Envelope(_Payload):
    event: str = Field(..., min_length=1)
    data: dict = Field(default_factory=dict)


class AuthenticatePayload(_Payload):
    token: str = Field(..., min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)


class LocationUpdatePayload(_Payload):
    driver_id: str = Field(..., alias="driverId", min_length=1)
    location: LatLng


class BookingStatusUpdatePayload(_Payload):
    booking_id: str = Field(..., alias="bookingId", min_length=1)
    status: BookingStatus
    driver_id: Optional[str] = Field(None, alias="driverId")
    driver_location: Optional[LatLng] = Field(None, alias="driverLocation")


# ── Outbound builders ─────────────────────────────────────────────────


def error_payload(kind: ErrorKind, message: str) -> dict:
    return {"kind": kind.value, "message": message}


def location_payload(location: Optional[DriverLocation]) -> Optional[dict]:
    return location.as_dict() if location is not None else None


def driver_online(
    driver_id: str, location: Optional[DriverLocation], timestamp: datetime
) -> dict:
    return {
        "driverId": driver_id,
        "location": location_payload(location),
        "timestamp": timestamp,
    }


def driver_location_updated(
    driver_id: str, location: LatLng, timestamp: datetime
) -> dict:
    return {
        "driverId": driver_id,
        "location": location.model_dump(),
        "timestamp": timestamp,
    }


def driver_offline(driver_id: str, timestamp: datetime) -> dict:
    return {"driverId": driver_id, "timestamp": timestamp}


def booking_status_changed(
    booking_id: str, status: BookingStatus, driver_location: Optional[dict]
) -> dict:
    return {
        "bookingId": booking_id,
        "status": status.value,
        "driverLocation": driver_location,
    }
