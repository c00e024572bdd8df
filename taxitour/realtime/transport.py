"""WebSocket transport handle and fan-out helper."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Iterable

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)


class SocketHandle:
    """One accepted WebSocket, addressed by ``sid``.

    Outbound frames use the envelope ``{"event": <name>, "data": {...}}``.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.sid = uuid.uuid4().hex
        self.connected_at = time.monotonic()

    def __repr__(self) -> str:
        return f"<SocketHandle {self.sid}>"

    @property
    def is_closed(self) -> bool:
        return (
            self.websocket.application_state != WebSocketState.CONNECTED
            or self.websocket.client_state != WebSocketState.CONNECTED
        )

    async def send(self, event: str, data: dict) -> bool:
        """Send one event; returns False instead of raising if the socket is gone."""
        if self.is_closed:
            return False
        try:
            await self.websocket.send_json(
                jsonable_encoder({"event": event, "data": data})
            )
        except (RuntimeError, WebSocketDisconnect):
            logger.debug("Dropped %s for closed socket %s", event, self.sid)
            return False
        return True

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        if self.is_closed:
            return
        try:
            await self.websocket.close(code=code)
        except RuntimeError:
            logger.debug("Close failed for socket %s", self.sid, exc_info=True)


async def fan_out(handles: Iterable, event: str, data: dict) -> int:
    """Deliver *event* to every handle concurrently; returns delivered count."""
    targets = list(handles)
    if not targets:
        return 0
    results = await asyncio.gather(*(h.send(event, data) for h in targets))
    return sum(1 for ok in results if ok)
