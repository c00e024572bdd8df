"""
Realtime gateway: the single entry point the WebSocket route talks to.

Inbound envelope: ``{"event": <name>, "data": {...}}``

==========================  =========================================
event                       handler
==========================  =========================================
``authenticate``            ``SessionAuthenticator.authenticate``
``locationUpdate``          ``LocationBroadcaster.update_location``
``bookingStatusUpdate``     ``BookingStatusRelay.update_status``
(socket closed)             ``RealtimeGateway.disconnect``
==========================  =========================================

The route awaits ``dispatch`` for each frame before reading the next one,
so events from one socket are handled in arrival order while different
sockets proceed independently.
"""

from __future__ import annotations

import logging

from fastapi import status
from pydantic import ValidationError

from taxitour.domain.enums import ErrorKind, UserRole
from taxitour.infrastructure.repositories import (
    BookingRepository,
    UserRepository,
    location_of,
)
from taxitour.infrastructure.security import TokenVerifier
from taxitour.realtime import events
from taxitour.realtime.authenticator import SessionAuthenticator
from taxitour.realtime.broadcaster import LocationBroadcaster
from taxitour.realtime.registry import LISTENERS, ConnectionRegistry
from taxitour.realtime.relay import BookingStatusRelay

logger = logging.getLogger(__name__)


class RealtimeGateway:
    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory,
        verifier: TokenVerifier,
        *,
        user_repository=UserRepository,
        booking_repository=BookingRepository,
        enforce_driver_identity: bool = True,
        enforce_booking_transitions: bool = True,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.user_repository = user_repository
        self.broadcaster = LocationBroadcaster(
            registry,
            session_factory,
            user_repository=user_repository,
            enforce_driver_identity=enforce_driver_identity,
        )
        self.authenticator = SessionAuthenticator(
            registry,
            session_factory,
            verifier,
            self.broadcaster,
            user_repository=user_repository,
        )
        self.relay = BookingStatusRelay(
            registry,
            session_factory,
            booking_repository=booking_repository,
            user_repository=user_repository,
            enforce_transitions=enforce_booking_transitions,
        )
        self._handlers = {
            events.AUTHENTICATE: (events.AuthenticatePayload, self.authenticator.authenticate),
            events.LOCATION_UPDATE: (events.LocationUpdatePayload, self.broadcaster.update_location),
            events.BOOKING_STATUS_UPDATE: (
                events.BookingStatusUpdatePayload,
                self.relay.update_status,
            ),
        }

    # ── Connection lifecycle ──────────────────────────────────────

    async def connect(self, handle) -> None:
        await self.registry.add_anonymous(handle)
        await self.registry.join(handle, LISTENERS)
        logger.info("Client connected: %s", handle.sid)

    async def dispatch(self, handle, message) -> None:
        try:
            envelope = events.Envelope.model_validate(message)
        except ValidationError:
            await handle.send(
                events.ERROR,
                events.error_payload(ErrorKind.BAD_REQUEST, "Expected {event, data}"),
            )
            return

        entry = self._handlers.get(envelope.event)
        if entry is None:
            await handle.send(
                events.ERROR,
                {
                    **events.error_payload(
                        ErrorKind.UNKNOWN_EVENT, f"Unknown event {envelope.event!r}"
                    ),
                    "event": envelope.event,
                },
            )
            return

        schema, handler = entry
        try:
            payload = schema.model_validate(envelope.data)
        except ValidationError as exc:
            await handle.send(
                events.ERROR,
                {
                    **events.error_payload(
                        ErrorKind.BAD_REQUEST,
                        f"Invalid {envelope.event} payload: {exc.error_count()} error(s)",
                    ),
                    "event": envelope.event,
                },
            )
            return

        await handler(handle, payload)

    async def disconnect(self, handle) -> None:
        conn = await self.registry.unregister(handle)
        logger.info("Client disconnected: %s", handle.sid)
        if conn is not None and conn.role is UserRole.DRIVER:
            await self.broadcaster.announce_offline(conn.user_id)

    # ── Maintenance ───────────────────────────────────────────────

    async def sweep(self, auth_timeout: float) -> int:
        """Evict idle anonymous sockets and connections whose transport died.

        Returns the number of sockets evicted.
        """
        evicted = 0
        for handle in await self.registry.expired_anonymous(auth_timeout):
            # Closing earlier sockets yields; this one may have authenticated since.
            if not await self.registry.evict_anonymous(handle):
                continue
            logger.info("Closing unauthenticated socket %s after %ss", handle.sid, auth_timeout)
            await handle.close(code=status.WS_1008_POLICY_VIOLATION)
            evicted += 1

        for handle in await self.registry.closed_handles():
            logger.warning("Socket %s closed without a disconnect event", handle.sid)
            await self.disconnect(handle)
            evicted += 1
        return evicted

    async def shutdown(self) -> None:
        handles = await self.registry.clear()
        for handle in handles:
            await handle.close(code=status.WS_1001_GOING_AWAY)
        logger.info("Realtime gateway closed %d socket(s)", len(handles))

    # ── Queries used by the HTTP API ──────────────────────────────

    async def online_drivers(self) -> list[dict]:
        drivers = await self.registry.online_drivers()
        if not drivers:
            return []
        async with self.session_factory() as session:
            repo = self.user_repository(session)
            result = []
            for conn in drivers:
                user = await repo.get_by_id(conn.user_id)
                result.append(
                    {
                        "user_id": conn.user_id,
                        "role": conn.role.value,
                        "is_online": conn.is_online,
                        "connected_at": conn.connected_at,
                        "location": events.location_payload(
                            location_of(user) if user is not None else None
                        ),
                    }
                )
        return result
