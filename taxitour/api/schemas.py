"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from taxitour.domain.enums import BookingStatus, VehicleType


# ── Requests ──────────────────────────────────────────────────────────


class BookingCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., pattern=r"^[0-9]{10}$")
    pickup_location: str = Field(..., min_length=1, max_length=255)
    drop_location: str = Field(..., min_length=1, max_length=255)
    travel_date: date
    pickup_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    passengers: int = Field(1, ge=1, le=8)
    vehicle_type: VehicleType = VehicleType.SEDAN
    payment_method: str = Field(..., min_length=1, max_length=30)
    message: Optional[str] = Field(None, max_length=2000)


class BookingStatusRequest(BaseModel):
    status: BookingStatus


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: str
    booking_ref: str
    user_id: str
    driver_id: Optional[str] = None
    full_name: str
    email: str
    phone: str
    pickup_location: str
    drop_location: str
    travel_date: date
    pickup_time: str
    passengers: int
    vehicle_type: str
    payment_method: str
    message: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LocationResponse(BaseModel):
    lat: float
    lng: float
    updatedAt: Optional[datetime] = None


class OnlineDriverResponse(BaseModel):
    user_id: str
    role: str
    is_online: bool
    connected_at: datetime
    location: Optional[LocationResponse] = None


class ConnectionStatsResponse(BaseModel):
    connections: int
    drivers: int
    anonymous: int
    listeners: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str


# ── Tour packages ─────────────────────────────────────────────────────


class TourPackageCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    duration: str = Field(..., min_length=1, max_length=60)
    location: str = Field(..., min_length=1, max_length=255)
    image: Optional[str] = Field(None, max_length=500)
    is_popular: bool = False
    features: list[str] = Field(default_factory=list)


class TourPackageUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[str] = Field(None, min_length=1, max_length=60)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    image: Optional[str] = Field(None, max_length=500)
    is_popular: Optional[bool] = None
    features: Optional[list[str]] = None


class TourPackageResponse(BaseModel):
    id: str
    title: str
    description: str
    price: float
    duration: str
    location: str
    image: Optional[str] = None
    is_popular: bool
    features: list[str]
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
