"""
Repository Pattern -- abstracts DB access so the realtime core and the
routes stay DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The mapped class is a class attribute so
the test-suite can point the same queries at SQLite mirror models.
"""

from __future__ import annotations

import secrets
import time
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, TourPackageModel, UserModel
from taxitour.domain.entities import Booking, DriverLocation, Location
from taxitour.domain.enums import BookingStatus


def new_booking_ref() -> str:
    """``BK`` + epoch millis, with a short random tail so bursts stay unique."""
    return f"BK{int(time.time() * 1000)}{secrets.token_hex(2).upper()}"


class UserRepository:
    model = UserModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str):
        return await self.session.get(self.model, user_id)

    async def update_location(
        self, user_id: str, lat: float, lng: float, updated_at: datetime
    ) -> bool:
        """Overwrite the user's last-known position.

        Works whether or not a previous position exists.  Returns False when
        no user with *user_id* exists.
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == user_id)
            .values(
                **self._location_values(lat, lng),
                location_lat=lat,
                location_lng=lng,
                location_updated_at=updated_at,
            )
        )
        return result.rowcount > 0

    async def get_location(self, user_id: str) -> Optional[DriverLocation]:
        user = await self.get_by_id(user_id)
        return location_of(user) if user is not None else None

    def _location_values(self, lat: float, lng: float) -> dict:
        from geoalchemy2.functions import ST_MakePoint, ST_SetSRID

        return {"location": ST_SetSRID(ST_MakePoint(lng, lat), 4326)}


class BookingRepository:
    model = BookingModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(
        self,
        *,
        user_id: str,
        full_name: str,
        email: str,
        phone: str,
        pickup_location: str,
        drop_location: str,
        travel_date: date,
        pickup_time: str,
        passengers: int,
        vehicle_type: str,
        payment_method: str,
        message: str | None = None,
        driver_id: str | None = None,
    ):
        booking = self.model(
            booking_ref=new_booking_ref(),
            user_id=user_id,
            driver_id=driver_id,
            full_name=full_name,
            email=email,
            phone=phone,
            pickup_location=pickup_location,
            drop_location=drop_location,
            travel_date=travel_date,
            pickup_time=pickup_time,
            passengers=passengers,
            vehicle_type=vehicle_type,
            payment_method=payment_method,
            message=message,
            status=BookingStatus.PENDING.value,
        )
        self.session.add(booking)
        await self.session.flush()
        # Load server-side defaults (created_at) while still in async context.
        await self.session.refresh(booking)
        return booking

    async def get_by_id(self, booking_id: str):
        return await self.session.get(self.model, booking_id)

    async def list_for_user(self, user_id: str) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.user_id == user_id)
            .order_by(self.model.created_at.desc(), self.model.booking_ref.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list:
        result = await self.session.execute(
            select(self.model).order_by(
                self.model.created_at.desc(), self.model.booking_ref.desc()
            )
        )
        return list(result.scalars().all())

    async def update_status(
        self, booking, status: BookingStatus, *, enforce: bool = True
    ):
        """Move *booking* to *status* through the ``Booking`` state machine.

        Raises ``InvalidStateTransition`` for an illegal move when *enforce*
        is set; nothing is written in that case.
        """
        entity = Booking(
            id=booking.id,
            user_id=booking.user_id,
            status=BookingStatus(booking.status),
            driver_id=booking.driver_id,
        )
        if enforce:
            entity.transition_to(status)
        else:
            entity.status = status

        booking.status = entity.status.value
        await self.session.flush()
        return booking

    async def delete(self, booking) -> None:
        await self.session.delete(booking)
        await self.session.flush()


class TourPackageRepository:
    model = TourPackageModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> list:
        result = await self.session.execute(
            select(self.model).order_by(self.model.created_at.desc(), self.model.title)
        )
        return list(result.scalars().all())

    async def get_by_id(self, package_id: str):
        return await self.session.get(self.model, package_id)

    async def create_package(self, **fields):
        package = self.model(**fields)
        self.session.add(package)
        await self.session.flush()
        await self.session.refresh(package)
        return package

    async def update_package(self, package, fields: dict):
        for name, value in fields.items():
            setattr(package, name, value)
        await self.session.flush()
        return package

    async def delete(self, package) -> None:
        await self.session.delete(package)
        await self.session.flush()


def location_of(user) -> Optional[DriverLocation]:
    """Build the domain value from a user row, or None if never reported."""
    if user.location_lat is None or user.location_lng is None:
        return None
    return DriverLocation(
        driver_id=user.id,
        location=Location(lat=user.location_lat, lng=user.location_lng),
        last_updated=user.location_updated_at,
    )
