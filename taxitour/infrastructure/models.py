"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``users``     -- riders, drivers and admins; drivers carry a last-known
  location that the realtime layer overwrites on every update
* ``bookings``  -- taxi bookings owned by a user, optionally assigned a driver
* ``tour_packages`` -- the public tour catalog managed by admins

Indexes
-------
* **GIST** on ``users.location`` for proximity queries.
* **B-Tree** on ``role``, ``status``, ``user_id``, ``driver_id`` and
  ``booking_ref`` for the look-ups used by the API and the socket relay.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from taxitour.domain.enums import BookingStatus, UserRole, VehicleType


def _new_id() -> str:
    return uuid.uuid4().hex


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default=UserRole.RIDER.value, nullable=False)

    # Last-known position; geometry for spatial queries, floats for fast reads
    location = Column(Geometry("POINT", srid=4326), nullable=True)
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_location", "location", postgresql_using="gist"),
        Index("idx_users_role", "role"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_id)
    booking_ref = Column(String(32), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    driver_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    full_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    pickup_location = Column(String(255), nullable=False)
    drop_location = Column(String(255), nullable=False)
    travel_date = Column(Date, nullable=False)
    pickup_time = Column(String(10), nullable=False)
    passengers = Column(Integer, default=1, nullable=False)
    vehicle_type = Column(String(20), default=VehicleType.SEDAN.value, nullable=False)
    payment_method = Column(String(30), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_user", "user_id"),
        Index("idx_bookings_driver", "driver_id"),
        Index("idx_bookings_ref", "booking_ref"),
    )


class TourPackageModel(Base):
    __tablename__ = "tour_packages"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    duration = Column(String(60), nullable=False)
    location = Column(String(255), nullable=False)
    # Hosted image URL; uploading is handled outside this service
    image = Column(String(500), nullable=True)
    is_popular = Column(Boolean, default=False, nullable=False)
    features = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_tour_packages_popular", "is_popular"),)
