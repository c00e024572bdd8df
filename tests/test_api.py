"""
Integration tests for the REST API endpoints.

Uses the in-memory SQLite database from ``conftest``.  The route modules'
repositories are patched to the SQLite-bound subclasses and ``get_db`` is
overridden, so the routes run unchanged against test models.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taxitour.config import settings


BOOKING_BODY = {
    "user_id": "r1",
    "full_name": "Asha Verma",
    "email": "asha@example.com",
    "phone": "9876543210",
    "pickup_location": "Connaught Place",
    "drop_location": "IGI Airport T3",
    "travel_date": "2026-11-01",
    "pickup_time": "09:30",
    "passengers": 2,
    "vehicle_type": "suv",
    "payment_method": "upi",
}


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(gateway, session_factory, repositories, tour_package_repository, add_user):
    """AsyncClient backed by SQLite + test models."""
    await add_user("r1")
    await add_user("admin1", role="admin")
    user_repo, booking_repo = repositories

    with (
        patch("taxitour.workers.sweeper.start_sweeper", new_callable=AsyncMock),
        patch("taxitour.workers.sweeper.stop_sweeper", new_callable=AsyncMock),
        patch("taxitour.api.routes.bookings.UserRepository", user_repo),
        patch("taxitour.api.routes.bookings.BookingRepository", booking_repo),
        patch("taxitour.api.dependencies.UserRepository", user_repo),
        patch(
            "taxitour.api.routes.tour_packages.TourPackageRepository",
            tour_package_repository,
        ),
    ):
        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        from taxitour.api.app import create_app
        from taxitour.api.dependencies import get_db

        app = create_app(gateway=gateway)
        app.dependency_overrides[get_db] = _test_db

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def admin_headers(token_for):
    return {"Authorization": f"Bearer {token_for('admin1')}"}


@pytest.fixture
def rider_headers(token_for):
    return {"Authorization": f"Bearer {token_for('r1')}"}


async def _create(client: AsyncClient, **overrides) -> dict:
    resp = await client.post("/api/v1/bookings", json={**BOOKING_BODY, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Admin ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_connection_stats(client: AsyncClient, gateway, make_handle):
    await gateway.connect(make_handle())

    resp = await client.get("/api/v1/admin/connections")

    assert resp.status_code == 200
    assert resp.json() == {"connections": 0, "drivers": 0, "anonymous": 1, "listeners": 1}


# ── Bookings ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_booking_returns_201(client: AsyncClient):
    data = await _create(client)
    assert data["status"] == "pending"
    assert data["booking_ref"].startswith("BK")
    assert data["vehicle_type"] == "suv"
    assert data["id"]


@pytest.mark.asyncio
async def test_create_booking_for_unknown_user(client: AsyncClient):
    resp = await client.post("/api/v1/bookings", json={**BOOKING_BODY, "user_id": "ghost"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_booking_validates_phone(client: AsyncClient):
    resp = await client.post("/api/v1/bookings", json={**BOOKING_BODY, "phone": "12-34"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient):
    created = await _create(client)
    resp = await client.get(f"/api/v1/bookings/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["booking_ref"] == created["booking_ref"]


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/bookings/does-not-exist")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_bookings_for_user(client: AsyncClient, add_user):
    await add_user("r2")
    first = await _create(client)
    second = await _create(client, pickup_time="18:00")
    await _create(client, user_id="r2")

    resp = await client.get("/api/v1/bookings", params={"user_id": "r1"})

    assert resp.status_code == 200
    ids = {b["id"] for b in resp.json()}
    assert ids == {first["id"], second["id"]}


@pytest.mark.asyncio
async def test_confirm_then_complete(client: AsyncClient):
    booking_id = (await _create(client))["id"]

    resp = await client.patch(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"

    resp = await client.patch(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "completed"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_cancelled_booking_cannot_be_confirmed(client: AsyncClient):
    booking_id = (await _create(client))["id"]
    await client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "cancelled"})

    resp = await client.patch(
        f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}
    )

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_status_update_for_missing_booking(client: AsyncClient):
    resp = await client.patch(
        "/api/v1/bookings/does-not-exist/status", json={"status": "confirmed"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_status_table_can_be_relaxed(client: AsyncClient):
    booking_id = (await _create(client))["id"]
    await client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "cancelled"})

    with patch.object(settings, "enforce_booking_transitions", False):
        resp = await client.patch(
            f"/api/v1/bookings/{booking_id}/status", json={"status": "pending"}
        )

    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_admin_lists_all_bookings(client: AsyncClient, add_user, admin_headers):
    await add_user("r2")
    await _create(client)
    await _create(client, user_id="r2")

    resp = await client.get("/api/v1/bookings/all", headers=admin_headers)

    assert resp.status_code == 200
    assert {b["user_id"] for b in resp.json()} == {"r1", "r2"}


@pytest.mark.asyncio
async def test_all_bookings_requires_token(client: AsyncClient):
    resp = await client.get("/api/v1/bookings/all")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_all_bookings_rejects_rider(client: AsyncClient, rider_headers):
    resp = await client.get("/api/v1/bookings/all", headers=rider_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_all_bookings_rejects_bad_token(client: AsyncClient):
    resp = await client.get(
        "/api/v1/bookings/all", headers={"Authorization": "Bearer garbage"}
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_admin_deletes_booking(client: AsyncClient, admin_headers):
    booking_id = (await _create(client))["id"]

    resp = await client.delete(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert resp.status_code == 204

    resp = await client.get(f"/api/v1/bookings/{booking_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_rider_cannot_delete_booking(client: AsyncClient, rider_headers):
    booking_id = (await _create(client))["id"]
    resp = await client.delete(f"/api/v1/bookings/{booking_id}", headers=rider_headers)
    assert resp.status_code == 403


# ── Tour packages ─────────────────────────────────────────────────────


PACKAGE_BODY = {
    "title": "Golden Triangle",
    "description": "Delhi, Agra and Jaipur by private car.",
    "price": 24999,
    "duration": "5 days",
    "location": "Delhi - Agra - Jaipur",
    "is_popular": True,
    "features": ["Hotel stays", "Driver"],
}


@pytest.mark.asyncio
async def test_create_and_fetch_package(client: AsyncClient, admin_headers):
    resp = await client.post("/api/v1/tour-packages", json=PACKAGE_BODY, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["features"] == ["Hotel stays", "Driver"]
    assert created["image"] is None

    resp = await client.get(f"/api/v1/tour-packages/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Golden Triangle"

    resp = await client.get("/api/v1/tour-packages")
    assert [p["id"] for p in resp.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_catalog_is_public_but_writes_are_admin_only(
    client: AsyncClient, rider_headers
):
    assert (await client.get("/api/v1/tour-packages")).status_code == 200

    resp = await client.post("/api/v1/tour-packages", json=PACKAGE_BODY)
    assert resp.status_code == 401

    resp = await client.post("/api/v1/tour-packages", json=PACKAGE_BODY, headers=rider_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_package_changes_only_given_fields(client: AsyncClient, admin_headers):
    package_id = (
        await client.post("/api/v1/tour-packages", json=PACKAGE_BODY, headers=admin_headers)
    ).json()["id"]

    resp = await client.put(
        f"/api/v1/tour-packages/{package_id}",
        json={"price": 19999, "is_popular": False},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["price"] == 19999
    assert data["is_popular"] is False
    assert data["title"] == "Golden Triangle"


@pytest.mark.asyncio
async def test_negative_price_is_rejected(client: AsyncClient, admin_headers):
    resp = await client.post(
        "/api/v1/tour-packages", json={**PACKAGE_BODY, "price": -1}, headers=admin_headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete_package(client: AsyncClient, admin_headers):
    package_id = (
        await client.post("/api/v1/tour-packages", json=PACKAGE_BODY, headers=admin_headers)
    ).json()["id"]

    resp = await client.delete(f"/api/v1/tour-packages/{package_id}", headers=admin_headers)
    assert resp.status_code == 204

    assert (await client.get(f"/api/v1/tour-packages/{package_id}")).status_code == 404
    resp = await client.delete(f"/api/v1/tour-packages/{package_id}", headers=admin_headers)
    assert resp.status_code == 404


# ── Drivers ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_online_drivers(client: AsyncClient, gateway, make_handle, add_user, token_for):
    await add_user("d1", role="driver", location=(28.6, 77.2))
    handle = make_handle()
    await gateway.connect(handle)
    await gateway.dispatch(
        handle,
        {"event": "authenticate", "data": {"token": token_for("d1"), "userId": "d1"}},
    )

    resp = await client.get("/api/v1/drivers/online")

    assert resp.status_code == 200
    drivers = resp.json()
    assert [d["user_id"] for d in drivers] == ["d1"]
    assert drivers[0]["location"]["lat"] == 28.6


@pytest.mark.asyncio
async def test_no_online_drivers(client: AsyncClient):
    resp = await client.get("/api/v1/drivers/online")
    assert resp.status_code == 200
    assert resp.json() == []
