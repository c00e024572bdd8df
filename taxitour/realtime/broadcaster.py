"""
Location / Status Broadcaster
=============================

* ``locationUpdate`` -> persist the driver's position, then fan out
  ``driverLocationUpdated`` to the ``listeners`` group.
* driver online / offline -> fan out ``driverOnline`` / ``driverOffline``.

Nothing is broadcast unless the write committed: listeners never see a
position that is not in the store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from taxitour.domain.entities import DriverLocation
from taxitour.domain.enums import ErrorKind, UserRole
from taxitour.infrastructure.repositories import UserRepository
from taxitour.realtime import events
from taxitour.realtime.registry import LISTENERS, ConnectionRegistry
from taxitour.realtime.transport import fan_out

logger = logging.getLogger(__name__)


class LocationBroadcaster:
    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory,
        user_repository=UserRepository,
        enforce_driver_identity: bool = True,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.user_repository = user_repository
        self.enforce_driver_identity = enforce_driver_identity

    async def update_location(
        self, handle, payload: events.LocationUpdatePayload
    ) -> bool:
        """Persist then broadcast.  Returns True if the update went out."""
        if self.enforce_driver_identity and not await self._may_report(
            handle, payload.driver_id
        ):
            return False

        timestamp = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session:
                found = await self.user_repository(session).update_location(
                    payload.driver_id,
                    payload.location.lat,
                    payload.location.lng,
                    timestamp,
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to persist location for driver %s", payload.driver_id)
            return False

        if not found:
            logger.warning("Location update for unknown driver %s", payload.driver_id)
            return False

        await self._broadcast(
            events.DRIVER_LOCATION_UPDATED,
            events.driver_location_updated(
                payload.driver_id, payload.location, timestamp
            ),
        )
        return True

    async def announce_online(
        self, driver_id: str, location: Optional[DriverLocation]
    ) -> int:
        return await self._broadcast(
            events.DRIVER_ONLINE,
            events.driver_online(driver_id, location, datetime.now(timezone.utc)),
        )

    async def announce_offline(self, driver_id: str) -> int:
        return await self._broadcast(
            events.DRIVER_OFFLINE,
            events.driver_offline(driver_id, datetime.now(timezone.utc)),
        )

    async def _may_report(self, handle, driver_id: str) -> bool:
        conn = await self.registry.connection_for(handle)
        if conn is None:
            kind, message = ErrorKind.NOT_AUTHENTICATED, "Authenticate first"
        elif conn.role is not UserRole.DRIVER or conn.user_id != driver_id:
            kind, message = ErrorKind.FORBIDDEN, "Cannot report location for another driver"
        else:
            return True

        logger.warning(
            "Rejected location update for %s from socket %s: %s",
            driver_id,
            handle.sid,
            kind.value,
        )
        await handle.send(
            events.LOCATION_UPDATE_ERROR, events.error_payload(kind, message)
        )
        return False

    async def _broadcast(self, event: str, data: dict) -> int:
        listeners = await self.registry.members(LISTENERS)
        return await fan_out(listeners, event, data)
