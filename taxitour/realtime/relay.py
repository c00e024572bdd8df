"""
Booking Status Relay
====================

``bookingStatusUpdate`` from a driver or admin socket:

1. Load the booking; unknown ids are logged and ignored.
2. Check the transition table (when enforced), set the status, commit.
3. If the booking's owner has a live socket, unicast
   ``bookingStatusChanged`` to it.

Persistence does not depend on delivery: the status is stored even when
the owner is offline.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from taxitour.domain.entities import InvalidStateTransition
from taxitour.domain.enums import ErrorKind, UserRole
from taxitour.infrastructure.repositories import BookingRepository, UserRepository
from taxitour.realtime import events
from taxitour.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

_RELAY_ROLES = {UserRole.DRIVER, UserRole.ADMIN}


class BookingStatusRelay:
    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory,
        booking_repository=BookingRepository,
        user_repository=UserRepository,
        enforce_transitions: bool = True,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.booking_repository = booking_repository
        self.user_repository = user_repository
        self.enforce_transitions = enforce_transitions

    async def update_status(
        self, handle, payload: events.BookingStatusUpdatePayload
    ) -> bool:
        """Returns True once the new status is committed."""
        conn = await self.registry.connection_for(handle)
        if conn is None:
            await self._reject(handle, payload, ErrorKind.NOT_AUTHENTICATED, "Authenticate first")
            return False
        if conn.role not in _RELAY_ROLES:
            await self._reject(
                handle, payload, ErrorKind.FORBIDDEN, "Only drivers and admins may update bookings"
            )
            return False

        try:
            async with self.session_factory() as session:
                bookings = self.booking_repository(session)
                booking = await bookings.get_by_id(payload.booking_id)
                if booking is None:
                    logger.info("Status update for unknown booking %s ignored", payload.booking_id)
                    return False

                try:
                    await bookings.update_status(
                        booking, payload.status, enforce=self.enforce_transitions
                    )
                except InvalidStateTransition as exc:
                    await self._reject(handle, payload, ErrorKind.INVALID_TRANSITION, str(exc))
                    return False
                owner_id = booking.user_id
                driver_location = await self._driver_location(
                    session, payload, payload.driver_id or booking.driver_id
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to persist status for booking %s", payload.booking_id)
            return False

        logger.info(
            "Booking %s -> %s (by %s)", payload.booking_id, payload.status.value, conn.user_id
        )

        target = await self.registry.lookup(owner_id)
        if target is None:
            logger.debug("Owner %s of booking %s is offline", owner_id, payload.booking_id)
        else:
            await target.send(
                events.BOOKING_STATUS_CHANGED,
                events.booking_status_changed(
                    payload.booking_id, payload.status, driver_location
                ),
            )
        return True

    async def _driver_location(
        self, session, payload: events.BookingStatusUpdatePayload, driver_id: Optional[str]
    ) -> Optional[dict]:
        if payload.driver_location is not None:
            return payload.driver_location.model_dump()
        if not driver_id:
            return None
        location = await self.user_repository(session).get_location(driver_id)
        return events.location_payload(location)

    async def _reject(self, handle, payload, kind: ErrorKind, message: str) -> None:
        logger.warning(
            "Rejected status update for booking %s from socket %s: %s",
            payload.booking_id,
            handle.sid,
            kind.value,
        )
        await handle.send(
            events.BOOKING_STATUS_ERROR,
            {**events.error_payload(kind, message), "bookingId": payload.booking_id},
        )
