"""
Booking endpoints
=================

POST   /api/v1/bookings                    -- create a booking (201, status pending)
GET    /api/v1/bookings?user_id=...        -- a user's bookings, newest first
GET    /api/v1/bookings/all                -- every booking (admin)
GET    /api/v1/bookings/{booking_id}       -- one booking
PATCH  /api/v1/bookings/{booking_id}/status -- move through the status table
DELETE /api/v1/bookings/{booking_id}       -- remove a booking (admin)

These routes only touch the store.  Live notification of status changes
is the socket relay's job.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taxitour.api.dependencies import get_db, require_admin
from taxitour.api.middleware import limiter
from taxitour.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusRequest,
)
from taxitour.config import settings
from taxitour.domain.entities import InvalidStateTransition
from taxitour.infrastructure.repositories import BookingRepository, UserRepository

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Create a booking",
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    if await UserRepository(db).get_by_id(body.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    return await BookingRepository(db).create_booking(
        user_id=body.user_id,
        full_name=body.full_name,
        email=body.email,
        phone=body.phone,
        pickup_location=body.pickup_location,
        drop_location=body.drop_location,
        travel_date=body.travel_date,
        pickup_time=body.pickup_time,
        passengers=body.passengers,
        vehicle_type=body.vehicle_type.value,
        payment_method=body.payment_method,
        message=body.message,
    )


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="List a user's bookings",
)
@limiter.limit("100/minute")
async def list_bookings(
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    return await BookingRepository(db).list_for_user(user_id)


@router.get(
    "/all",
    response_model=list[BookingResponse],
    summary="List every booking (admin)",
)
@limiter.limit("100/minute")
async def list_all_bookings(
    request: Request,
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
):
    return await BookingRepository(db).list_all()


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: str,
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingRepository(db).get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Update booking status",
    description=(
        "pending -> confirmed | cancelled, confirmed -> completed | cancelled. "
        "completed and cancelled are terminal."
    ),
)
@limiter.limit("100/minute")
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: BookingStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = BookingRepository(db)
    booking = await repo.get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    try:
        return await repo.update_status(
            booking, body.status, enforce=settings.enforce_booking_transitions
        )
    except InvalidStateTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.delete(
    "/{booking_id}",
    status_code=204,
    response_class=Response,
    summary="Delete a booking (admin)",
)
@limiter.limit("100/minute")
async def delete_booking(
    request: Request,
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
):
    repo = BookingRepository(db)
    booking = await repo.get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    await repo.delete(booking)
    return Response(status_code=204)
