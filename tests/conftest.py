"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL.  The PostGIS ``location`` column is mirrored as a
plain String column in the test models, and the production repositories
are subclassed to point at those models.

Sockets are replaced by ``FakeHandle``, which records every event sent to it.
"""

from __future__ import annotations

import itertools
import uuid
from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from taxitour.infrastructure.repositories import (
    BookingRepository,
    TourPackageRepository,
    UserRepository,
)
from taxitour.infrastructure.security import TokenVerifier, create_access_token
from taxitour.realtime.gateway import RealtimeGateway
from taxitour.realtime.registry import ConnectionRegistry

TEST_DB_URL = "sqlite+aiosqlite://"
TEST_SECRET = "test-secret"


class SqliteBase(DeclarativeBase):
    pass


# Mirror the production models but without PostGIS Geometry columns
# (SQLite doesn't support them).

class SqliteUserModel(SqliteBase):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default="rider", nullable=False)
    location = Column(String, nullable=True)  # stub for Geometry
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class SqliteBookingModel(SqliteBase):
    __tablename__ = "bookings"
    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
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
    vehicle_type = Column(String(20), default="sedan", nullable=False)
    payment_method = Column(String(30), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class SqliteTourPackageModel(SqliteBase):
    __tablename__ = "tour_packages"
    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    duration = Column(String(60), nullable=False)
    location = Column(String(255), nullable=False)
    image = Column(String(500), nullable=True)
    is_popular = Column(Boolean, default=False, nullable=False)
    features = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class SqliteUserRepository(UserRepository):
    model = SqliteUserModel

    def _location_values(self, lat: float, lng: float) -> dict:
        return {"location": f"POINT({lng} {lat})"}


class SqliteBookingRepository(BookingRepository):
    model = SqliteBookingModel


class SqliteTourPackageRepository(TourPackageRepository):
    model = SqliteTourPackageModel


class FakeHandle:
    """Stands in for ``SocketHandle``; records outbound events."""

    _ids = itertools.count(1)

    def __init__(self, name: str | None = None):
        self.sid = name or f"sock-{next(self._ids)}"
        self.sent: list[tuple[str, dict]] = []
        self.closed = False
        self.close_code: int | None = None

    def __repr__(self) -> str:
        return f"<FakeHandle {self.sid}>"

    @property
    def is_closed(self) -> bool:
        return self.closed

    async def send(self, event: str, data: dict) -> bool:
        if self.closed:
            return False
        self.sent.append((event, data))
        return True

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.close_code = code

    def events(self, name: str) -> list[dict]:
        return [data for event, data in self.sent if event == name]


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables on a fresh in-memory DB, yield a session factory, dispose."""
    engine = create_async_engine(TEST_DB_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SqliteBase.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def gateway(registry, session_factory) -> RealtimeGateway:
    return RealtimeGateway(
        registry,
        session_factory,
        TokenVerifier(TEST_SECRET),
        user_repository=SqliteUserRepository,
        booking_repository=SqliteBookingRepository,
    )


@pytest.fixture
def make_handle():
    return FakeHandle


@pytest.fixture
def token_for():
    def _token(user_id: str, **kwargs) -> str:
        return create_access_token(user_id, secret_key=TEST_SECRET, **kwargs)

    return _token


@pytest.fixture
def repositories():
    """(user repository class, booking repository class) bound to SQLite models."""
    return SqliteUserRepository, SqliteBookingRepository


@pytest.fixture
def tour_package_repository():
    return SqliteTourPackageRepository


@pytest.fixture
def models():
    """(user model, booking model) mirrors used by the SQLite database."""
    return SqliteUserModel, SqliteBookingModel


@pytest_asyncio.fixture
async def add_user(session_factory):
    async def _add(user_id: str, role: str = "rider", location=None):
        async with session_factory() as session:
            user = SqliteUserModel(
                id=user_id,
                name=f"User {user_id}",
                email=f"{user_id}@example.com",
                phone="9876543210",
                role=role,
            )
            if location is not None:
                user.location_lat, user.location_lng = location
            session.add(user)
            await session.commit()
            return user

    return _add


@pytest_asyncio.fixture
async def add_booking(session_factory):
    async def _add(user_id: str, status: str = "pending", driver_id=None):
        async with session_factory() as session:
            booking = await SqliteBookingRepository(session).create_booking(
                user_id=user_id,
                driver_id=driver_id,
                full_name="Test Rider",
                email="rider@example.com",
                phone="9876543210",
                pickup_location="Connaught Place",
                drop_location="IGI Airport T3",
                travel_date=date(2026, 11, 1),
                pickup_time="09:30",
                passengers=2,
                vehicle_type="sedan",
                payment_method="cash",
            )
            booking.status = status
            await session.commit()
            return booking

    return _add
