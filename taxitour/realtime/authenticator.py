"""
Session Authenticator
=====================

Turns an anonymous socket into a tracked connection.

1. Verify the JWT (signature + expiry) and require ``sub == userId``.
2. Load the user record.
3. Register the connection, join ``user:<id>``; drivers also join
   ``drivers`` and a ``driverOnline`` event goes to every listener.

Any failure is reported to the caller only, as ``authenticationError``;
the socket stays anonymous and may retry.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from taxitour.domain.enums import ErrorKind, UserRole
from taxitour.infrastructure.repositories import UserRepository, location_of
from taxitour.infrastructure.security import InvalidTokenError, TokenVerifier
from taxitour.realtime import events
from taxitour.realtime.registry import (
    DRIVERS,
    Connection,
    ConnectionRegistry,
    user_room,
)

logger = logging.getLogger(__name__)


class AuthenticationFailure(Exception):
    def __init__(self, kind: ErrorKind, message: str = "Authentication failed"):
        super().__init__(message)
        self.kind = kind


class SessionAuthenticator:
    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory,
        verifier: TokenVerifier,
        broadcaster,
        user_repository=UserRepository,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.verifier = verifier
        self.broadcaster = broadcaster
        self.user_repository = user_repository

    async def authenticate(
        self, handle, payload: events.AuthenticatePayload
    ) -> Optional[Connection]:
        try:
            user = await self._load_user(payload)
        except AuthenticationFailure as exc:
            logger.warning(
                "Authentication failed for socket %s (user=%s): %s",
                handle.sid,
                payload.user_id,
                exc.kind.value,
            )
            await handle.send(
                events.AUTHENTICATION_ERROR,
                events.error_payload(exc.kind, "Authentication failed"),
            )
            return None

        role = UserRole(user.role)
        displaced = await self.registry.register(user.id, handle, role)
        await self.registry.join(handle, user_room(user.id))

        for old in displaced:
            if old.user_id == user.id:
                logger.info(
                    "User %s re-authenticated; socket %s replaces %s",
                    user.id,
                    handle.sid,
                    old.handle.sid,
                )
            elif old.role is UserRole.DRIVER:
                # This socket used to speak for another driver.
                await self.broadcaster.announce_offline(old.user_id)

        if role is UserRole.DRIVER:
            await self.registry.join(handle, DRIVERS)
            await self.broadcaster.announce_online(user.id, location_of(user))

        await handle.send(
            events.AUTHENTICATED, {"userId": user.id, "role": role.value}
        )
        logger.info("User %s authenticated as %s on %s", user.id, role.value, handle.sid)
        return await self.registry.connection_for(handle)

    async def _load_user(self, payload: events.AuthenticatePayload):
        try:
            subject = self.verifier.verify(payload.token)
        except InvalidTokenError as exc:
            raise AuthenticationFailure(exc.kind) from exc
        if subject != payload.user_id:
            raise AuthenticationFailure(ErrorKind.INVALID_TOKEN)

        try:
            async with self.session_factory() as session:
                user = await self.user_repository(session).get_by_id(payload.user_id)
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed for %s", payload.user_id)
            raise AuthenticationFailure(ErrorKind.UNAVAILABLE) from exc

        if user is None:
            raise AuthenticationFailure(ErrorKind.USER_NOT_FOUND)
        return user
