"""
FastAPI application factory.

* Builds the realtime gateway (registry + authenticator + broadcaster +
  relay) for this app instance and exposes it as ``app.state.realtime``.
* Starts / stops the background socket sweeper via lifespan events.
* Registers the booking, tour package, driver and admin routes and the
  ``/ws`` socket.
* Applies CORS and rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from taxitour.api.middleware import limiter
from taxitour.api.routes import admin, bookings, drivers, tour_packages, ws
from taxitour.config import settings
from taxitour.infrastructure.database import async_session_factory
from taxitour.infrastructure.security import TokenVerifier
from taxitour.realtime.gateway import RealtimeGateway
from taxitour.realtime.registry import ConnectionRegistry
from taxitour.workers import sweeper as _sweeper

logging.basicConfig(level=logging.INFO)


def build_gateway() -> RealtimeGateway:
    return RealtimeGateway(
        ConnectionRegistry(),
        async_session_factory,
        TokenVerifier(settings.jwt_secret_key, settings.jwt_algorithm),
        enforce_driver_identity=settings.enforce_driver_identity,
        enforce_booking_transitions=settings.enforce_booking_transitions,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the socket sweeper on startup; stop it and close sockets on shutdown."""
    await _sweeper.start_sweeper(app.state.realtime)
    yield
    await _sweeper.stop_sweeper()
    await app.state.realtime.shutdown()


def create_app(gateway: RealtimeGateway | None = None) -> FastAPI:
    app = FastAPI(
        title="Taxi & Tour Booking API",
        description=(
            "Taxi bookings plus a WebSocket layer that tracks connected "
            "drivers, broadcasts their location and online status, and "
            "relays booking status changes to the booking's owner."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.realtime = gateway or build_gateway()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(tour_packages.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(ws.router)

    return app
