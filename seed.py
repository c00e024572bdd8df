"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 4 riders, 4 drivers (with last-known positions) and 1 admin
  - 6 sample bookings (mix of pending, confirmed, completed, cancelled)
  - 3 tour packages

Prints a signed access token per user so the ``/ws`` socket can be
exercised by hand.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

from geoalchemy2.functions import ST_MakePoint, ST_SetSRID
from sqlalchemy import text

from taxitour.domain.enums import BookingStatus, UserRole, VehicleType
from taxitour.infrastructure.database import async_session_factory, engine
from taxitour.infrastructure.models import BookingModel, TourPackageModel, UserModel
from taxitour.infrastructure.repositories import new_booking_ref
from taxitour.infrastructure.security import create_access_token

# Delhi city centre (approx)
CITY_LAT, CITY_LNG = 28.6139, 77.2090


USERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "phone": "9810000001", "role": UserRole.RIDER},
    {"name": "Priya Patel", "email": "priya@example.com", "phone": "9810000002", "role": UserRole.RIDER},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "phone": "9810000003", "role": UserRole.RIDER},
    {"name": "Sneha Gupta", "email": "sneha@example.com", "phone": "9810000004", "role": UserRole.RIDER},
    {"name": "Vikram Singh", "email": "vikram@example.com", "phone": "9810000005", "role": UserRole.DRIVER, "at": (28.6140, 77.2100)},
    {"name": "Karan Joshi", "email": "karan@example.com", "phone": "9810000006", "role": UserRole.DRIVER, "at": (28.6200, 77.2150)},
    {"name": "Meera Nair", "email": "meera@example.com", "phone": "9810000007", "role": UserRole.DRIVER, "at": (28.6050, 77.2000)},
    {"name": "Arjun Kumar", "email": "arjun@example.com", "phone": "9810000008", "role": UserRole.DRIVER},
    {"name": "Diya Iyer", "email": "admin@example.com", "phone": "9810000009", "role": UserRole.ADMIN},
]

BOOKINGS = [
    # (rider index, driver index or None, pickup, drop, status, days ahead)
    (0, 4, "Connaught Place", "IGI Airport T3", BookingStatus.CONFIRMED, 1),
    (1, None, "Karol Bagh", "Agra (tour)", BookingStatus.PENDING, 3),
    (2, 5, "Saket", "Gurugram Cyber City", BookingStatus.COMPLETED, -2),
    (3, None, "Noida Sector 18", "Old Delhi Railway Station", BookingStatus.CANCELLED, -1),
    (0, None, "IGI Airport T3", "Connaught Place", BookingStatus.PENDING, 5),
    (1, 6, "Hauz Khas", "Jaipur (tour)", BookingStatus.CONFIRMED, 7),
]

TOUR_PACKAGES = [
    {"title": "Golden Triangle", "description": "Delhi, Agra and Jaipur by private car.", "price": 24999, "duration": "5 days", "location": "Delhi - Agra - Jaipur", "is_popular": True, "features": ["Hotel stays", "Driver", "Monument tickets"]},
    {"title": "Taj Mahal Day Trip", "description": "Sunrise at the Taj, back in Delhi by evening.", "price": 4999, "duration": "1 day", "location": "Agra", "is_popular": True, "features": ["Expressway", "Guide"]},
    {"title": "Rishikesh Weekend", "description": "Ganga aarti and a rafting morning.", "price": 8999, "duration": "2 days", "location": "Rishikesh", "features": ["Rafting", "Camp stay"]},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        now = datetime.now(timezone.utc)
        user_models = []
        for u in USERS:
            m = UserModel(
                name=u["name"], email=u["email"], phone=u["phone"], role=u["role"].value
            )
            if "at" in u:
                lat, lng = u["at"]
                m.location = ST_SetSRID(ST_MakePoint(lng, lat), 4326)
                m.location_lat, m.location_lng = lat, lng
                m.location_updated_at = now
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Bookings ──────────────────────────────────────────────────
        for rider_idx, driver_idx, pickup, drop, status, days in BOOKINGS:
            rider = user_models[rider_idx]
            session.add(
                BookingModel(
                    booking_ref=new_booking_ref(),
                    user_id=rider.id,
                    driver_id=user_models[driver_idx].id if driver_idx is not None else None,
                    full_name=rider.name,
                    email=rider.email,
                    phone=rider.phone,
                    pickup_location=pickup,
                    drop_location=drop,
                    travel_date=date.today() + timedelta(days=days),
                    pickup_time="09:30",
                    passengers=2,
                    vehicle_type=VehicleType.SEDAN.value,
                    payment_method="cash",
                    status=status.value,
                )
            )
        await session.flush()
        print(f"  Created {len(BOOKINGS)} bookings")

        # ── Tour packages ─────────────────────────────────────────────
        for p in TOUR_PACKAGES:
            session.add(TourPackageModel(**p))
        await session.flush()
        print(f"  Created {len(TOUR_PACKAGES)} tour packages")

        await session.commit()

        print("\nAccess tokens (for /ws authenticate):")
        for m in user_models:
            print(f"  {m.role:<7} {m.id}  {create_access_token(m.id)}")
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
