"""
Connection Registry
===================

In-memory liveness state for the socket layer.  One instance is built per
application (see ``taxitour.api.app``) and torn down at shutdown.

Indexes
-------
* ``user_id -> Connection``   -- at most one live connection per user; a
  second authentication from the same user replaces the first.
* ``sid -> user_id``          -- reverse index, O(1) cleanup on disconnect.
* ``group -> {sid: handle}``  -- named broadcast groups (``listeners``,
  ``drivers``, ``user:<id>``), plus ``sid -> {group}`` for O(1) leave.
* ``sid -> (handle, since)``  -- accepted sockets that have not
  authenticated yet, swept by ``workers.sweeper``.

All mutations happen under a single ``asyncio.Lock``.  The registry is not
the source of truth for anything persisted; it can be rebuilt from
reconnecting clients.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from taxitour.domain.enums import UserRole

LISTENERS = "listeners"
DRIVERS = "drivers"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


@dataclass(frozen=True)
class Connection:
    user_id: str
    handle: Any
    role: UserRole
    is_online: bool = True
    connected_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ConnectionRegistry:
    def __init__(self) -> None:
        self._by_user: dict[str, Connection] = {}
        self._by_sid: dict[str, str] = {}
        self._groups: dict[str, dict[str, Any]] = {}
        self._memberships: dict[str, set[str]] = {}
        self._anonymous: dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._by_user)

    # ── Lifecycle ─────────────────────────────────────────────────

    async def add_anonymous(self, handle, since: float | None = None) -> None:
        async with self._lock:
            self._anonymous[handle.sid] = (
                handle,
                since if since is not None else time.monotonic(),
            )

    async def register(
        self, user_id: str, handle, role: UserRole
    ) -> list[Connection]:
        """Bind *handle* to *user_id*.  Returns the connections it displaced."""
        async with self._lock:
            displaced: list[Connection] = []

            # The handle was authenticated as somebody else before.
            previous_user = self._by_sid.get(handle.sid)
            if previous_user is not None and previous_user != user_id:
                old = self._by_user.pop(previous_user, None)
                if old is not None:
                    self._leave_user_groups(old)
                    displaced.append(old)

            # The user was connected through another socket: last call wins.
            existing = self._by_user.get(user_id)
            if existing is not None and existing.handle.sid != handle.sid:
                self._by_sid.pop(existing.handle.sid, None)
                self._leave_user_groups(existing)
                self._anonymous[existing.handle.sid] = (
                    existing.handle,
                    time.monotonic(),
                )
                displaced.append(existing)

            self._by_user[user_id] = Connection(
                user_id=user_id, handle=handle, role=role
            )
            self._by_sid[handle.sid] = user_id
            self._anonymous.pop(handle.sid, None)
            return displaced

    async def unregister(self, handle) -> Optional[Connection]:
        """Forget *handle* entirely.  Returns its connection if it had one."""
        async with self._lock:
            self._anonymous.pop(handle.sid, None)
            for group in self._memberships.pop(handle.sid, set()):
                self._discard(group, handle.sid)

            user_id = self._by_sid.pop(handle.sid, None)
            if user_id is None:
                return None
            conn = self._by_user.get(user_id)
            if conn is None or conn.handle.sid != handle.sid:
                return None
            del self._by_user[user_id]
            return conn

    async def evict_anonymous(self, handle) -> bool:
        """Forget *handle* only if it is still unauthenticated.

        Returns False when the socket registered in the meantime.
        """
        async with self._lock:
            if self._anonymous.pop(handle.sid, None) is None:
                return False
            for group in self._memberships.pop(handle.sid, set()):
                self._discard(group, handle.sid)
            return True

    async def clear(self) -> list:
        """Drop all state; returns every handle that was known."""
        async with self._lock:
            handles = {h.sid: h for h, _ in self._anonymous.values()}
            for members in self._groups.values():
                handles.update(members)
            for conn in self._by_user.values():
                handles[conn.handle.sid] = conn.handle
            self._by_user.clear()
            self._by_sid.clear()
            self._groups.clear()
            self._memberships.clear()
            self._anonymous.clear()
            return list(handles.values())

    # ── Groups ────────────────────────────────────────────────────

    async def join(self, handle, group: str) -> None:
        async with self._lock:
            self._groups.setdefault(group, {})[handle.sid] = handle
            self._memberships.setdefault(handle.sid, set()).add(group)

    async def leave(self, handle, group: str) -> None:
        async with self._lock:
            self._discard(group, handle.sid)

    async def members(self, group: str) -> list:
        async with self._lock:
            return list(self._groups.get(group, {}).values())

    # ── Queries ───────────────────────────────────────────────────

    async def lookup(self, user_id: str):
        """Live transport handle for *user_id*, or None."""
        async with self._lock:
            conn = self._by_user.get(str(user_id))
            return conn.handle if conn else None

    async def connection_for(self, handle) -> Optional[Connection]:
        async with self._lock:
            user_id = self._by_sid.get(handle.sid)
            return self._by_user.get(user_id) if user_id is not None else None

    async def online_drivers(self) -> list[Connection]:
        async with self._lock:
            return [
                c
                for c in self._by_user.values()
                if c.role is UserRole.DRIVER and c.is_online
            ]

    async def expired_anonymous(
        self, max_age: float, now: float | None = None
    ) -> list:
        now = now if now is not None else time.monotonic()
        async with self._lock:
            return [
                handle
                for handle, since in self._anonymous.values()
                if now - since >= max_age
            ]

    async def closed_handles(self) -> list:
        """Registered handles whose transport went away without a disconnect."""
        async with self._lock:
            return [c.handle for c in self._by_user.values() if c.handle.is_closed]

    async def stats(self) -> dict:
        async with self._lock:
            return {
                "connections": len(self._by_user),
                "drivers": sum(
                    1 for c in self._by_user.values() if c.role is UserRole.DRIVER
                ),
                "anonymous": len(self._anonymous),
                "listeners": len(self._groups.get(LISTENERS, {})),
            }

    # ── Internals (lock held) ─────────────────────────────────────

    def _discard(self, group: str, sid: str) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.pop(sid, None)
        if not members:
            del self._groups[group]
        groups = self._memberships.get(sid)
        if groups is not None:
            groups.discard(group)

    def _leave_user_groups(self, conn: Connection) -> None:
        for group in (user_room(conn.user_id), DRIVERS):
            self._discard(group, conn.handle.sid)
